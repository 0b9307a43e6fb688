import datetime
import secrets
import string
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.schemas import CouponCreate, CouponOut, CouponToggle, CouponValidateIn, CouponValidateOut
from ..db import get_db
from ..models.coupon import Coupon
from ..services.coupon_ledger import check_coupon, compute_discount, find_coupon, normalize_code
from ..services.entitlements import utcnow
from ..services.pricing import price_for

router = APIRouter(prefix="/coupons", tags=["coupons"])

_ALPHABET = string.ascii_uppercase + string.digits


def _naive_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    # la base guarda UTC sin tzinfo
    if value is not None and value.tzinfo is not None:
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


def generate_coupon_code(prefix: str = "HALAL") -> str:
    return prefix + "".join(secrets.choice(_ALPHABET) for _ in range(6))


@router.get("", response_model=List[CouponOut])
def list_coupons(db: Session = Depends(get_db)):
    return db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


@router.post("", response_model=CouponOut)
def create_coupon(
    body: CouponCreate,
    x_user: Optional[str] = Header(default=None, alias="X-User", convert_underscores=False),
    db: Session = Depends(get_db),
):
    if body.discount_type == "percentage" and body.discount_value > 100:
        raise HTTPException(status_code=422, detail="PERCENTAGE_OVER_100")
    valid_from = _naive_utc(body.valid_from)
    valid_until = _naive_utc(body.valid_until)
    if valid_from and valid_until and valid_until < valid_from:
        raise HTTPException(status_code=422, detail="INVALID_VALIDITY_WINDOW")

    coupon = Coupon(
        code=normalize_code(body.code) or generate_coupon_code(),
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        stripe_coupon_id=body.stripe_coupon_id,
        max_uses=body.max_uses,
        times_used=0,
        valid_from=valid_from,
        valid_until=valid_until,
        is_active=True,
        created_by=x_user,
    )
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="COUPON_CODE_TAKEN")
    db.refresh(coupon)
    return coupon


@router.post("/{coupon_id}/toggle", response_model=CouponOut)
def toggle_coupon(coupon_id: int, body: CouponToggle, db: Session = Depends(get_db)):
    coupon = db.get(Coupon, coupon_id)
    if coupon is None:
        raise HTTPException(status_code=404, detail="COUPON_NOT_FOUND")
    coupon.is_active = body.is_active
    db.commit()
    db.refresh(coupon)
    return coupon


@router.post("/validate", response_model=CouponValidateOut)
def validate_coupon(body: CouponValidateIn, db: Session = Depends(get_db)):
    price = price_for(body.duration_months)
    if price is None:
        raise HTTPException(status_code=422, detail="INVALID_DURATION")

    now = None
    if body.now_iso:
        try:
            now = datetime.datetime.fromisoformat(body.now_iso)
        except ValueError:
            raise HTTPException(status_code=422, detail="INVALID_NOW_ISO")
    now = _naive_utc(now) or utcnow()

    amount = int(price["amount"])
    coupon = find_coupon(db, body.code)
    reason = check_coupon(coupon, now)
    discount = 0 if reason else compute_discount(coupon, amount)
    return {
        "code": normalize_code(body.code),
        "valid": reason is None,
        "reason": reason or "OK",
        "amount": amount,
        "discount": discount,
        "new_total": amount - discount,
    }
