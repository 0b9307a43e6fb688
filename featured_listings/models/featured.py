from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from ..db import Base


class FeaturedListing(Base):
    __tablename__ = "featured_listing"
    id = Column(Integer, primary_key=True)
    business_id = Column(Integer, ForeignKey("business.id"), nullable=False)
    user_id = Column(String(64), nullable=False)
    # session id, charge id o clave de recompensa: llave natural de idempotencia
    payment_reference = Column(String(255), unique=True, nullable=False)
    payment_intent_id = Column(String(255), unique=True)
    amount_paid = Column(Integer, nullable=False, default=0)  # centavos
    currency = Column(String(3), nullable=False, default="SGD")
    duration_months = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False)
    coupon_code = Column(String(64))
    discount_amount = Column(Integer, nullable=False, default=0)
    source = Column(String(20), nullable=False)  # checkout | charge | reward | reconcile
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_featured_business_expiry", "business_id", "expiry_date"),)
