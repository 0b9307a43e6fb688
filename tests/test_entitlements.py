from datetime import datetime, timedelta

import pytest

from featured_listings.core.errors import ActivationFailed
from featured_listings.core.schemas import PaidPurchase, RewardGrant
from featured_listings.db import SessionLocal
from featured_listings.models.business import Business
from featured_listings.models.coupon import Coupon, CouponAudit
from featured_listings.models.featured import FeaturedListing
from featured_listings.services.entitlements import (
    activate,
    current_featured_state,
    is_currently_featured,
    list_entitlements,
    sync_featured_flags,
)
from featured_listings.services.pricing import calculate_expiry

from conftest import OWNER

T0 = datetime(2026, 1, 31, 9, 30, 0)


def _paid(business_id, ref="cs_1", months=3, amount=7500, intent=None, coupon=None, source="checkout"):
    return PaidPurchase(
        business_id=business_id,
        user_id=OWNER,
        duration_months=months,
        amount=amount,
        currency="sgd",
        reference_id=ref,
        payment_intent_id=intent,
        coupon_code=coupon,
        source=source,
    )


def _activate(grant, now=T0):
    with SessionLocal() as s:
        return activate(s, grant, now=now)


def test_calculate_expiry_calendar_months():
    assert calculate_expiry(datetime(2026, 1, 15), 1) == datetime(2026, 2, 15)
    assert calculate_expiry(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert calculate_expiry(datetime(2026, 11, 30), 3) == datetime(2027, 2, 28)
    assert calculate_expiry(datetime(2026, 1, 1, 8, 0), 6) == datetime(2026, 7, 1, 8, 0)


def test_three_month_purchase(make_business):
    bid = make_business()
    res = _activate(_paid(bid, months=3, amount=7500))
    assert res.status == "activated"
    assert res.coupon == "none"
    with SessionLocal() as s:
        row = s.get(FeaturedListing, res.entitlement_id)
        assert row.amount_paid == 7500
        assert row.currency == "SGD"
        assert row.start_date == T0
        assert row.expiry_date == datetime(2026, 4, 30, 9, 30, 0)
        assert row.is_active is True
        b = s.get(Business, bid)
        assert b.is_featured is True
        assert b.featured_expiry == row.expiry_date


def test_replays_create_one_row(make_business):
    bid = make_business()
    results = [_activate(_paid(bid, ref="cs_same")) for _ in range(5)]
    assert [r.status for r in results] == ["activated"] + ["duplicate"] * 4
    assert len({r.entitlement_id for r in results}) == 1
    with SessionLocal() as s:
        assert s.query(FeaturedListing).count() == 1


def test_payment_intent_links_both_paths(make_business):
    bid = make_business()
    first = _activate(_paid(bid, ref="cs_1", intent="pi_1"))
    second = _activate(_paid(bid, ref="ch_1", intent="pi_1", source="charge"))
    assert first.status == "activated"
    assert second.status == "duplicate"
    assert second.entitlement_id == first.entitlement_id


def test_unknown_business_fails_loudly():
    with pytest.raises(ActivationFailed):
        _activate(_paid(9999))
    with SessionLocal() as s:
        assert s.query(FeaturedListing).count() == 0


def test_expiry_boundary(make_business):
    bid = make_business()
    res = _activate(_paid(bid, months=1, amount=2900))
    with SessionLocal() as s:
        expiry = s.get(FeaturedListing, res.entitlement_id).expiry_date
        assert is_currently_featured(s, bid, expiry - timedelta(seconds=1)) is True
        # expiry == now ya no está activo
        assert is_currently_featured(s, bid, expiry) is False
        assert is_currently_featured(s, bid, expiry + timedelta(days=1)) is False


def test_featured_until_is_latest_active_expiry(make_business):
    bid = make_business()
    _activate(_paid(bid, ref="cs_long", months=6, amount=14000))
    _activate(_paid(bid, ref="cs_short", months=1, amount=2900), now=T0 + timedelta(days=1))
    with SessionLocal() as s:
        state = current_featured_state(s, bid, now=T0 + timedelta(days=2))
        assert state.featured is True
        assert state.featured_until == calculate_expiry(T0, 6)


def test_state_self_heals_stale_flag(make_business):
    bid = make_business()
    _activate(_paid(bid, months=1, amount=2900))
    later = calculate_expiry(T0, 1) + timedelta(hours=1)
    with SessionLocal() as s:
        state = current_featured_state(s, bid, now=later)
        assert state.featured is False
        assert state.featured_until is None
        assert state.repaired is True
    with SessionLocal() as s:
        b = s.get(Business, bid)
        assert b.is_featured is False and b.featured_expiry is None
        # segunda lectura: nada que reparar
        assert current_featured_state(s, bid, now=later).repaired is False


def test_state_repairs_half_written_flag(make_business):
    bid = make_business()
    res = _activate(_paid(bid))
    with SessionLocal() as s:
        b = s.get(Business, bid)
        b.is_featured = False
        b.featured_expiry = None
        s.commit()
    with SessionLocal() as s:
        state = current_featured_state(s, bid, now=T0 + timedelta(days=1))
        assert state.featured is True and state.repaired is True
    with SessionLocal() as s:
        assert s.get(Business, bid).featured_expiry == s.get(FeaturedListing, res.entitlement_id).expiry_date


def test_current_state_unknown_business():
    with SessionLocal() as s:
        assert current_featured_state(s, 12345) is None


def test_sync_featured_flags(make_business):
    a = make_business()
    b = make_business()
    _activate(_paid(a, ref="cs_a", months=1, amount=2900))
    _activate(_paid(b, ref="cs_b", months=6, amount=14000))
    with SessionLocal() as s:
        repaired = sync_featured_flags(s, now=T0 + timedelta(days=45))
    assert repaired == 1
    with SessionLocal() as s:
        assert s.get(Business, a).is_featured is False
        assert s.get(Business, b).is_featured is True


def test_coupon_consumed_once_per_payment(make_business, make_coupon):
    bid = make_business()
    make_coupon(code="SAVE10", max_uses=10)
    assert _activate(_paid(bid, ref="cs_c", coupon="save10")).coupon == "consumed"
    assert _activate(_paid(bid, ref="cs_c", coupon="save10")).status == "duplicate"
    with SessionLocal() as s:
        assert s.query(Coupon).filter_by(code="SAVE10").one().times_used == 1
        notes = [(a.event, a.notes) for a in s.query(CouponAudit).all()]
        assert notes == [("used", "ref:cs_c")]


def test_coupon_at_cap_keeps_entitlement(make_business, make_coupon):
    bid = make_business()
    make_coupon(code="LAST1", max_uses=1, times_used=1)
    res = _activate(_paid(bid, ref="cs_capped", coupon="LAST1"))
    assert res.status == "activated"
    assert res.coupon == "skipped"
    with SessionLocal() as s:
        assert s.query(Coupon).filter_by(code="LAST1").one().times_used == 1
        audit = s.query(CouponAudit).one()
        assert audit.event == "cap-reached"
        assert audit.notes == "ref:cs_capped"
        assert s.get(Business, bid).is_featured is True


def test_coupon_expired_after_checkout_keeps_entitlement(make_business, make_coupon):
    bid = make_business()
    make_coupon(code="FLASH", valid_until=T0 - timedelta(minutes=5))
    res = _activate(_paid(bid, ref="cs_flash", coupon="FLASH"))
    assert res.status == "activated" and res.coupon == "skipped"
    with SessionLocal() as s:
        assert s.query(CouponAudit).one().event == "unusable"


def test_deleted_coupon_keeps_entitlement(make_business):
    bid = make_business()
    res = _activate(_paid(bid, ref="cs_ghost", coupon="GHOST"))
    assert res.status == "activated" and res.coupon == "skipped"


def test_reward_uses_same_activation_path(make_business):
    bid = make_business()
    grant = RewardGrant(business_id=bid, user_id=OWNER, discount_amount=2900)
    assert grant.reference_id == f"badge_reward_{bid}"
    first = _activate(grant)
    again = _activate(RewardGrant(business_id=bid, user_id=OWNER, discount_amount=2900))
    assert first.status == "activated"
    assert again.status == "duplicate"
    with SessionLocal() as s:
        row = s.query(FeaturedListing).one()
        assert row.payment_reference == f"badge_reward_{bid}"
        assert row.amount_paid == 0
        assert row.discount_amount == 2900
        assert row.duration_months == 1
        assert row.coupon_code == "BADGE_BACKLINK_REWARD"
        assert row.source == "reward"
        assert row.expiry_date == calculate_expiry(T0, 1)
        # la etiqueta no es un cupón del ledger
        assert s.query(CouponAudit).count() == 0


def test_history_newest_first(make_business):
    bid = make_business()
    _activate(_paid(bid, ref="cs_old", months=1, amount=2900), now=T0)
    _activate(_paid(bid, ref="cs_new", months=1, amount=2900), now=T0 + timedelta(days=60))
    with SessionLocal() as s:
        refs = [r.payment_reference for r in list_entitlements(s, bid)]
    assert refs == ["cs_new", "cs_old"]


def test_featured_endpoints(client, make_business):
    bid = make_business()
    now = datetime.utcnow()
    _activate(_paid(bid, ref="cs_live", months=1, amount=2900), now=now)

    r = client.get(f"/businesses/{bid}/featured")
    assert r.status_code == 200
    js = r.json()
    assert js["featured"] is True and js["business_id"] == bid

    r = client.get(f"/businesses/{bid}/featured/history")
    assert r.status_code == 200
    assert [e["payment_reference"] for e in r.json()] == ["cs_live"]

    assert client.get("/businesses/9999/featured").status_code == 404
    assert client.get("/businesses/9999/featured/history").status_code == 404
