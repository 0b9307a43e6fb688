import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import CheckoutRejected
from ..core.schemas import CheckoutIn, CheckoutOut
from ..models.business import Business
from ..models.coupon import Coupon
from .coupon_ledger import check_coupon, compute_discount, find_coupon, normalize_code
from .entitlements import is_currently_featured, utcnow
from .payment_gateway import PaymentGateway
from .pricing import MIN_CHARGE_AMOUNT, price_for

logger = logging.getLogger("featured.checkout")


def quote(
    db: Session, duration_months: int, coupon_code: Optional[str], now: datetime
) -> Tuple[int, int, Optional[Coupon]]:
    """Precio base, descuento y cupón (pre-chequeo, no reserva usos)."""
    price = price_for(duration_months)
    if price is None:
        raise CheckoutRejected("INVALID_DURATION", 422)
    base = int(price["amount"])
    if not normalize_code(coupon_code):
        return base, 0, None
    coupon = find_coupon(db, coupon_code)
    reason = check_coupon(coupon, now)
    if reason:
        raise CheckoutRejected(reason, 400)
    discount = compute_discount(coupon, base)
    # Stripe no abre sesiones de pago por debajo del mínimo
    if base - discount < MIN_CHARGE_AMOUNT:
        raise CheckoutRejected("AMOUNT_BELOW_MINIMUM", 400)
    return base, discount, coupon


def _load_business(db: Session, business_id: int, user_id: str, now: datetime) -> Business:
    business = db.get(Business, business_id)
    if business is None:
        raise CheckoutRejected("BUSINESS_NOT_FOUND", 404)
    if business.claimed_by != user_id:
        raise CheckoutRejected("NOT_OWNER", 403)
    if business.status != "approved":
        raise CheckoutRejected("BUSINESS_NOT_APPROVED", 400)
    # No se confía en is_featured: se mira la fila vigente
    if is_currently_featured(db, business.id, now):
        raise CheckoutRejected("ALREADY_FEATURED", 409)
    return business


def create_checkout(
    db: Session,
    gateway: PaymentGateway,
    body: CheckoutIn,
    user_id: Optional[str],
    now: Optional[datetime] = None,
) -> CheckoutOut:
    now = now or utcnow()
    if not user_id:
        raise CheckoutRejected("UNAUTHORIZED", 401)

    if price_for(body.duration_months) is None:
        raise CheckoutRejected("INVALID_DURATION", 422)
    business = _load_business(db, body.business_id, user_id, now)
    base, discount, coupon = quote(db, body.duration_months, body.coupon_code, now)
    code = coupon.code if coupon is not None else ""
    business_id = business.id
    price = price_for(body.duration_months)

    # Contexto completo en metadata: el webhook no necesita consultar nada más
    metadata = {
        "business_id": str(business_id),
        "user_id": user_id,
        "duration_months": str(body.duration_months),
        "coupon_code": code,
        "discount_amount": str(discount),
    }
    unit_amount = base - discount
    params = {
        "mode": "payment",
        "payment_method_types": ["card", "paynow", "grabpay"],
        "line_items": [
            {
                "price_data": {
                    "currency": settings.currency,
                    "product_data": {
                        "name": f"Featured Listing - {business.name}",
                        "description": price["description"],
                    },
                    "unit_amount": unit_amount,
                },
                "quantity": 1,
            }
        ],
        "success_url": f"{settings.site_url}/dashboard?upgraded=true&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{settings.site_url}/upgrade/featured?cancelled=true",
        "metadata": metadata,
        # el cargo (evento de respaldo) hereda la misma metadata
        "payment_intent_data": {"metadata": metadata},
    }
    if coupon is not None and coupon.stripe_coupon_id:
        # Stripe aplica el descuento sobre el precio de lista
        params["line_items"][0]["price_data"]["unit_amount"] = base
        params["discounts"] = [{"coupon": coupon.stripe_coupon_id}]

    # Suelta la transacción de lectura antes de la llamada externa
    db.rollback()

    session = gateway.create_checkout_session(params)
    logger.info(
        "checkout session %s opened business=%s user=%s months=%s amount=%s coupon=%s",
        session.session_id,
        business_id,
        user_id,
        body.duration_months,
        unit_amount,
        code or "-",
    )
    return CheckoutOut(
        session_id=session.session_id,
        url=session.url,
        amount=unit_amount,
        currency=settings.currency.upper(),
        duration_months=body.duration_months,
        discount_amount=discount,
    )
