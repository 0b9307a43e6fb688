import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..models.coupon import Coupon, CouponAudit

logger = logging.getLogger("featured.coupons")


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def find_coupon(db: Session, code: Optional[str]) -> Optional[Coupon]:
    code = normalize_code(code)
    if not code:
        return None
    return db.query(Coupon).populate_existing().filter(Coupon.code == code).first()


def check_coupon(coupon: Optional[Coupon], now: datetime) -> Optional[str]:
    """
    Devuelve el motivo por el que el cupón no se puede usar en `now`, o None.
    Ventana cerrada en ambos extremos; un extremo ausente no limita.
    """
    if coupon is None:
        return "COUPON_NOT_FOUND"
    if not coupon.is_active:
        return "COUPON_INACTIVE"
    if coupon.valid_from is not None and now < coupon.valid_from:
        return "COUPON_NOT_YET_VALID"
    if coupon.valid_until is not None and now > coupon.valid_until:
        return "COUPON_EXPIRED"
    if coupon.max_uses is not None and int(coupon.times_used or 0) >= int(coupon.max_uses):
        return "COUPON_MAX_USES_REACHED"
    return None


def is_usable(coupon: Optional[Coupon], now: datetime) -> bool:
    return check_coupon(coupon, now) is None


def compute_discount(coupon: Coupon, amount: int) -> int:
    value = float(coupon.discount_value or 0)
    if coupon.discount_type == "percentage":
        discount = int(round(amount * value / 100.0))
    elif coupon.discount_type == "fixed":
        discount = int(round(value))
    else:
        raise ValueError(f"unknown discount type: {coupon.discount_type}")
    return max(0, min(discount, amount))


def record_note(db: Session, code: str, event: str, reference: str, by_user: Optional[str] = None):
    db.add(CouponAudit(coupon_code=code, event=event, by_user=by_user, notes=f"ref:{reference}"))


def consume_coupon(
    db: Session, code: str, reference: str, now: datetime, by_user: Optional[str] = None
) -> bool:
    """
    Chequeo autoritativo + incremento en una sola sentencia. Si ninguna fila
    cambia, el cupón ya no era usable al momento de escribir: se deja nota de
    conciliación y se devuelve False. El commit lo hace el caller.
    """
    code = normalize_code(code)
    stmt = (
        update(Coupon)
        .where(
            Coupon.code == code,
            Coupon.is_active.is_(True),
            or_(Coupon.valid_from.is_(None), Coupon.valid_from <= now),
            or_(Coupon.valid_until.is_(None), Coupon.valid_until >= now),
            or_(Coupon.max_uses.is_(None), Coupon.times_used < Coupon.max_uses),
        )
        .values(times_used=Coupon.times_used + 1)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    if res.rowcount and res.rowcount > 0:
        record_note(db, code, "used", reference, by_user)
        return True

    reason = check_coupon(find_coupon(db, code), now) or "COUPON_UNUSABLE"
    event = "cap-reached" if reason == "COUPON_MAX_USES_REACHED" else "unusable"
    record_note(db, code, event, reference, by_user)
    logger.warning(
        "coupon %s not incremented for %s (%s); entitlement kept, needs reconciliation",
        code,
        reference,
        reason,
    )
    return False
