from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from ..db import Base


class Business(Base):
    __tablename__ = "business"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    website = Column(String(500))
    status = Column(String(20), default="pending", nullable=False)  # pending | approved | rejected
    claimed_by = Column(String(64), index=True)  # usuario dueño del listado
    # Derivados de featured_listing; los mantiene services.entitlements
    is_featured = Column(Boolean, default=False, nullable=False)
    featured_expiry = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
