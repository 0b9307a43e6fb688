"""
Webhooks de Stripe: verificar firma -> normalizar -> activar.

Nada del payload se interpreta antes de validar la firma. Los eventos
aceptados se convierten en un `PaidPurchase` y pasan por `activate`, que es
idempotente; por eso el handler siempre confirma la recepción a Stripe.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

import stripe
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import WebhookSignatureError
from ..core.schemas import PaidPurchase
from .entitlements import activate

logger = logging.getLogger("featured.webhook")
security_logger = logging.getLogger("featured.security")
alerts = logging.getLogger("featured.alerts")

PAID_STATUSES = ("paid", "no_payment_required")

# payload firmado pero con forma inesperada
MALFORMED = (ValidationError, AttributeError, TypeError)


def verify_event(payload: bytes, sig_header: Optional[str], secret: str, tolerance: int) -> Dict[str, Any]:
    if not sig_header:
        raise WebhookSignatureError("missing Stripe-Signature header")
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookSignatureError("payload is not utf-8") from e
    try:
        stripe.WebhookSignature.verify_header(text, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(str(e)) from e
    # firmado pero ilegible: se descarta aguas abajo
    try:
        event = json.loads(text)
    except ValueError:
        return {}
    return event if isinstance(event, dict) else {}


def _payment_intent_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def normalize_checkout_session(obj: Dict[str, Any], source: str = "checkout") -> Optional[PaidPurchase]:
    # no_payment_required: descuento de Stripe que cubre todo el precio
    if obj.get("payment_status") not in PAID_STATUSES:
        return None
    md = obj.get("metadata") or {}
    discount = (obj.get("total_details") or {}).get("amount_discount") or md.get("discount_amount") or 0
    return PaidPurchase(
        business_id=md.get("business_id"),
        user_id=md.get("user_id"),
        duration_months=md.get("duration_months"),
        amount=obj.get("amount_total") or 0,
        currency=str(obj.get("currency") or settings.currency).upper(),
        reference_id=obj.get("id"),
        payment_intent_id=_payment_intent_id(obj.get("payment_intent")),
        coupon_code=md.get("coupon_code") or None,
        discount_amount=discount,
        source=source,
    )


def normalize_charge(obj: Dict[str, Any]) -> Optional[PaidPurchase]:
    md = obj.get("metadata") or {}
    # cargos ajenos al listado destacado
    if not md.get("business_id"):
        return None
    amount = obj.get("amount_captured")
    if amount is None:
        amount = obj.get("amount") or 0
    return PaidPurchase(
        business_id=md.get("business_id"),
        user_id=md.get("user_id"),
        duration_months=md.get("duration_months"),
        amount=amount,
        currency=str(obj.get("currency") or settings.currency).upper(),
        reference_id=obj.get("id"),
        payment_intent_id=_payment_intent_id(obj.get("payment_intent")),
        coupon_code=md.get("coupon_code") or None,
        discount_amount=md.get("discount_amount") or 0,
        source="charge",
    )


EVENT_DISPATCH: Dict[str, Callable[[Dict[str, Any]], Optional[PaidPurchase]]] = {
    "checkout.session.completed": normalize_checkout_session,
    # PayNow/GrabPay confirman después del redirect
    "checkout.session.async_payment_succeeded": normalize_checkout_session,
    # respaldo si Stripe nunca entrega el evento de checkout
    "charge.succeeded": normalize_charge,
}


def handle_event(db: Session, event: Dict[str, Any]) -> str:
    """Despacha un evento ya verificado. Devuelve el resultado, nunca lanza."""
    event_id = event.get("id")
    event_type = event.get("type")
    normalizer = EVENT_DISPATCH.get(event_type) if isinstance(event_type, str) else None
    if normalizer is None:
        logger.info("ignoring stripe event %s (%s)", event_id, event_type)
        return "ignored"

    try:
        obj = (event.get("data") or {}).get("object") or {}
        grant = normalizer(obj)
    except MALFORMED as e:
        logger.error("dropping malformed %s event %s: %s", event_type, event_id, e)
        return "dropped"
    if grant is None:
        logger.info("stripe event %s (%s) has nothing to activate", event_id, event_type)
        return "ignored"

    try:
        result = activate(db, grant)
    except Exception:
        db.rollback()
        alerts.critical(
            "PAID ENTITLEMENT NOT ACTIVATED ref=%s business=%s event=%s; manual reconciliation required",
            grant.reference_id,
            grant.business_id,
            event_id,
            exc_info=True,
        )
        return "failed"
    return result.status


def process_webhook(db: Session, payload: bytes, sig_header: Optional[str]) -> str:
    try:
        event = verify_event(
            payload, sig_header, settings.stripe_webhook_secret, settings.stripe_webhook_tolerance
        )
    except WebhookSignatureError as e:
        security_logger.warning("stripe webhook rejected: %s", e)
        raise
    if not event:
        logger.error("dropping signed stripe payload that is not a JSON object")
        return "dropped"
    return handle_event(db, event)
