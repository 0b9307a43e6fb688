import logging
import re
from datetime import datetime
from typing import Optional

import requests
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import RewardRejected
from ..core.schemas import ActivationResult, BacklinkSweepOut, RewardGrant
from ..models.business import Business
from .entitlements import activate
from .pricing import price_for

logger = logging.getLogger("featured.rewards")

USER_AGENT = "Singapore Halal Directory Badge Verifier/1.0"


def business_url(business_id: int) -> str:
    return f"{settings.site_url.rstrip('/')}/business/{business_id}"


def links_to(html: str, url: str) -> bool:
    # /business/1 no debe calzar con /business/12
    pattern = re.escape(url) + r"(?![0-9A-Za-z_-])"
    return re.search(pattern, html or "", re.IGNORECASE) is not None


def verify_backlink(db: Session, business_id: int) -> bool:
    """True si la web del negocio enlaza a su ficha en el directorio."""
    business = db.get(Business, business_id)
    if business is None or not business.website:
        return False
    website = business.website
    db.rollback()
    try:
        r = requests.get(
            website,
            headers={"User-Agent": USER_AGENT},
            timeout=settings.backlink_timeout_seconds,
        )
    except requests.RequestException as e:
        logger.info("backlink check failed for business %s: %s", business_id, e)
        return False
    if r.status_code != 200:
        logger.info("backlink check for business %s got HTTP %s", business_id, r.status_code)
        return False
    return links_to(r.text, business_url(business_id))


def grant_backlink_reward(
    db: Session, business_id: int, user_id: str, now: Optional[datetime] = None
) -> ActivationResult:
    """Un mes destacado gratis; la clave sintética impide repetirlo por negocio."""
    business = db.get(Business, business_id)
    if business is None:
        raise RewardRejected("BUSINESS_NOT_FOUND")
    if business.status != "approved":
        raise RewardRejected("BUSINESS_NOT_APPROVED")
    if not user_id or business.claimed_by != user_id:
        raise RewardRejected("NOT_OWNER")

    grant = RewardGrant(
        business_id=business_id,
        user_id=user_id,
        currency=settings.currency.upper(),
        discount_amount=int(price_for(1)["amount"]),
    )
    result = activate(db, grant, now=now)
    logger.info("backlink reward for business %s: %s", business_id, result.status)
    return result


def process_backlink_verifications(db: Session, now: Optional[datetime] = None) -> BacklinkSweepOut:
    candidates = [
        (b.id, b.claimed_by)
        for b in db.query(Business)
        .filter(
            Business.status == "approved",
            Business.claimed_by.isnot(None),
            Business.website.isnot(None),
            Business.is_featured.is_(False),
        )
        .order_by(Business.id)
        .all()
    ]
    db.rollback()

    out = BacklinkSweepOut(checked=len(candidates), verified=0, rewarded=0)
    for business_id, owner in candidates:
        if not verify_backlink(db, business_id):
            continue
        out.verified += 1
        try:
            result = grant_backlink_reward(db, business_id, owner, now=now)
        except RewardRejected as e:
            logger.warning("backlink reward rejected for business %s: %s", business_id, e.reason)
            continue
        if result.status == "activated":
            out.rewarded += 1
            out.business_ids.append(business_id)
    return out
