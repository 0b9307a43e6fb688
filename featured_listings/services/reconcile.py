import logging
from datetime import datetime
from typing import Dict

from sqlalchemy.orm import Session

from .entitlements import activate
from .payment_gateway import PaymentGateway
from .webhooks import MALFORMED, normalize_checkout_session

logger = logging.getLogger("featured.reconcile")
alerts = logging.getLogger("featured.alerts")


def reconcile_recent_sessions(db: Session, gateway: PaymentGateway, since: datetime) -> Dict[str, int]:
    """
    Re-aplica las sesiones pagadas desde `since` por si algún webhook se perdió.
    Se puede correr las veces que haga falta: lo ya activado sale como duplicate.
    Un fallo en una sesión no corta el barrido.
    """
    counts = {"seen": 0, "activated": 0, "duplicate": 0, "skipped": 0, "failed": 0}
    for session in gateway.list_paid_sessions(since):
        counts["seen"] += 1
        try:
            grant = normalize_checkout_session(session, source="reconcile")
        except MALFORMED as e:
            logger.warning("session %s has no featured metadata: %s", session.get("id"), e)
            counts["skipped"] += 1
            continue
        if grant is None:
            counts["skipped"] += 1
            continue
        try:
            result = activate(db, grant)
        except Exception:
            db.rollback()
            alerts.critical(
                "reconcile could not activate ref=%s business=%s",
                grant.reference_id,
                grant.business_id,
                exc_info=True,
            )
            counts["failed"] += 1
            continue
        counts[result.status] += 1
        if result.status == "activated":
            logger.warning("reconcile activated missed payment %s", grant.reference_id)
    return counts
