"""
Datos demo: un negocio aprobado con dueño y dos cupones.
Uso: python scripts/seed_demo.py
"""
from datetime import timedelta

from featured_listings.db import Base, SessionLocal, engine
from featured_listings.models.business import Business
from featured_listings.models.coupon import Coupon
from featured_listings.services.entitlements import utcnow


def main():
    Base.metadata.create_all(bind=engine)
    s = SessionLocal()
    try:
        now = utcnow()
        biz = s.query(Business).filter_by(slug="demo-nasi-lemak").first()
        if not biz:
            biz = Business(
                name="Demo Nasi Lemak",
                slug="demo-nasi-lemak",
                website="https://example.com",
                status="approved",
                claimed_by="demo-owner",
            )
            s.add(biz)

        for code, dtype, value, max_uses in (("LAUNCH20", "percentage", 20, 100), ("FIVEOFF", "fixed", 500, None)):
            if not s.query(Coupon).filter_by(code=code).first():
                s.add(
                    Coupon(
                        code=code,
                        discount_type=dtype,
                        discount_value=value,
                        max_uses=max_uses,
                        times_used=0,
                        valid_from=now - timedelta(days=1),
                        valid_until=now + timedelta(days=30),
                        is_active=True,
                        created_by="seed",
                    )
                )
        s.commit()
        print(f"Seed business: {biz.id} ({biz.slug})")
    finally:
        s.close()


if __name__ == "__main__":
    main()
