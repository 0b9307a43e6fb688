"""
Activación idempotente de listados destacados.

Un solo punto de entrada (`activate`) para los dos disparadores: pagos de
Stripe (`PaidPurchase`, venga del checkout, del cargo o de la conciliación) y
recompensas por backlink (`RewardGrant`). La llave de idempotencia es la
referencia del procesador (o la clave sintética de la recompensa); el estado
`is_featured` del negocio se deriva siempre de las filas de featured_listing.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ActivationFailed
from ..core.schemas import ActivationResult, FeaturedState, PaidPurchase, RewardGrant
from ..models.business import Business
from ..models.featured import FeaturedListing
from .coupon_ledger import consume_coupon, normalize_code
from .pricing import calculate_expiry

logger = logging.getLogger("featured.entitlements")

Grant = Union[PaidPurchase, RewardGrant]


def utcnow() -> datetime:
    # UTC sin tzinfo: así se guarda en la base
    return datetime.now(timezone.utc).replace(tzinfo=None)


def find_existing(
    db: Session, reference_id: str, payment_intent_id: Optional[str] = None
) -> Optional[FeaturedListing]:
    conds = [FeaturedListing.payment_reference == reference_id]
    if payment_intent_id:
        conds.append(FeaturedListing.payment_intent_id == payment_intent_id)
    return db.query(FeaturedListing).filter(or_(*conds)).first()


def active_entitlement(db: Session, business_id: int, now: datetime) -> Optional[FeaturedListing]:
    # expiry == now ya no cuenta como activo
    return (
        db.query(FeaturedListing)
        .filter(
            FeaturedListing.business_id == business_id,
            FeaturedListing.is_active.is_(True),
            FeaturedListing.expiry_date > now,
        )
        .order_by(FeaturedListing.expiry_date.desc(), FeaturedListing.id.desc())
        .first()
    )


def is_currently_featured(db: Session, business_id: int, now: Optional[datetime] = None) -> bool:
    return active_entitlement(db, business_id, now or utcnow()) is not None


def _apply_featured(business: Business, current: Optional[FeaturedListing]) -> bool:
    featured = current is not None
    until = current.expiry_date if current is not None else None
    changed = bool(business.is_featured) != featured or business.featured_expiry != until
    business.is_featured = featured
    business.featured_expiry = until
    return changed


def _duplicate(db: Session, existing: FeaturedListing, grant: Grant) -> ActivationResult:
    entitlement_id = existing.id
    db.rollback()
    logger.info(
        "duplicate activation ignored ref=%s business=%s entitlement=%s",
        grant.reference_id,
        grant.business_id,
        entitlement_id,
    )
    return ActivationResult(status="duplicate", entitlement_id=entitlement_id)


def activate(db: Session, grant: Grant, now: Optional[datetime] = None) -> ActivationResult:
    now = now or utcnow()

    # 1) idempotencia por referencia del procesador / payment intent
    existing = find_existing(db, grant.reference_id, grant.payment_intent_id)
    if existing is not None:
        return _duplicate(db, existing, grant)

    business = db.get(Business, grant.business_id)
    if business is None:
        db.rollback()
        raise ActivationFailed(f"business {grant.business_id} not found for {grant.reference_id}")

    coupon_code = normalize_code(grant.coupon_code) or None

    # 2) fila del listado destacado
    row = FeaturedListing(
        business_id=business.id,
        user_id=grant.user_id,
        payment_reference=grant.reference_id,
        payment_intent_id=grant.payment_intent_id,
        amount_paid=int(grant.amount),
        currency=grant.currency.upper(),
        duration_months=int(grant.duration_months),
        start_date=now,
        expiry_date=calculate_expiry(now, grant.duration_months),
        coupon_code=coupon_code,
        discount_amount=int(grant.discount_amount or 0),
        source=grant.source,
        is_active=True,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        # otra entrega del mismo pago ganó la carrera
        db.rollback()
        existing = find_existing(db, grant.reference_id, grant.payment_intent_id)
        if existing is None:
            raise
        return _duplicate(db, existing, grant)

    # 3) estado derivado del negocio, en la misma transacción
    _apply_featured(business, active_entitlement(db, business.id, now))

    # 4) uso del cupón (solo cupones del ledger; la recompensa trae solo una etiqueta)
    coupon_status = "none"
    if grant.kind == "paid" and coupon_code:
        consumed = consume_coupon(db, coupon_code, grant.reference_id, now, by_user=grant.user_id)
        coupon_status = "consumed" if consumed else "skipped"

    entitlement_id = row.id
    db.commit()
    logger.info(
        "entitlement %s activated ref=%s business=%s months=%s coupon=%s",
        entitlement_id,
        grant.reference_id,
        grant.business_id,
        grant.duration_months,
        coupon_status,
    )
    return ActivationResult(status="activated", entitlement_id=entitlement_id, coupon=coupon_status)


def current_featured_state(
    db: Session, business_id: int, now: Optional[datetime] = None
) -> Optional[FeaturedState]:
    """
    Estado vigente calculado desde featured_listing. Si los campos
    denormalizados del negocio no coinciden (caída a media escritura o
    expiración), se corrigen aquí mismo.
    """
    now = now or utcnow()
    business = db.get(Business, business_id)
    if business is None:
        return None
    current = active_entitlement(db, business_id, now)
    state = FeaturedState(
        business_id=business_id,
        featured=current is not None,
        featured_until=current.expiry_date if current is not None else None,
    )
    state.repaired = _apply_featured(business, current)
    if state.repaired:
        db.commit()
        logger.warning("featured flags repaired for business %s", business_id)
    else:
        db.rollback()
    return state


def sync_featured_flags(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    repaired = 0
    for business in db.query(Business).order_by(Business.id).all():
        if _apply_featured(business, active_entitlement(db, business.id, now)):
            repaired += 1
    db.commit()
    if repaired:
        logger.warning("featured flags repaired for %s businesses", repaired)
    return repaired


def list_entitlements(db: Session, business_id: int) -> List[FeaturedListing]:
    return (
        db.query(FeaturedListing)
        .filter(FeaturedListing.business_id == business_id)
        .order_by(FeaturedListing.start_date.desc(), FeaturedListing.id.desc())
        .all()
    )
