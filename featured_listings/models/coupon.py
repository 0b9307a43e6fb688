from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, UniqueConstraint

from ..db import Base


class Coupon(Base):
    __tablename__ = "coupon"
    id = Column(Integer, primary_key=True)
    code = Column(String(64), unique=True, index=True, nullable=False)
    discount_type = Column(String(20), nullable=False)  # 'percentage' | 'fixed'
    discount_value = Column(Numeric(12, 2), nullable=False)  # % o centavos
    stripe_coupon_id = Column(String(255))
    max_uses = Column(Integer)
    times_used = Column(Integer, default=0, nullable=False)
    valid_from = Column(DateTime)
    valid_until = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(64))
    created_at = Column(DateTime, default=datetime.utcnow)


class CouponAudit(Base):
    __tablename__ = "coupon_audit"
    id = Column(Integer, primary_key=True)
    coupon_code = Column(String(64), index=True, nullable=False)
    event = Column(String(32), nullable=False)  # used | cap-reached | unusable
    at = Column(DateTime, default=datetime.utcnow)
    by_user = Column(String(64))
    notes = Column(String(255))

    __table_args__ = (UniqueConstraint("event", "notes", name="uq_coupon_audit_event_notes"),)
