from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

REWARD_COUPON_TAG = "BADGE_BACKLINK_REWARD"


class CheckoutIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    business_id: int = Field(..., alias="businessId", gt=0)
    duration_months: int = Field(..., alias="durationMonths")
    coupon_code: Optional[str] = Field(default=None, alias="couponCode")


class CheckoutOut(BaseModel):
    session_id: str
    url: Optional[str] = None
    amount: int
    currency: str
    duration_months: int
    discount_amount: int = 0


class PaidPurchase(BaseModel):
    """Pago confirmado por Stripe, normalizado desde cualquiera de los dos eventos."""

    kind: Literal["paid"] = "paid"
    business_id: int = Field(..., gt=0)
    user_id: str = Field(..., min_length=1)
    duration_months: int = Field(..., gt=0)
    amount: int = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    reference_id: str = Field(..., min_length=1)
    payment_intent_id: Optional[str] = None
    coupon_code: Optional[str] = None
    discount_amount: int = Field(default=0, ge=0)
    source: Literal["checkout", "charge", "reconcile"] = "checkout"


class RewardGrant(BaseModel):
    """Compra sintética de monto cero por verificación de backlink."""

    kind: Literal["reward"] = "reward"
    business_id: int = Field(..., gt=0)
    user_id: str = Field(..., min_length=1)
    duration_months: int = 1
    amount: int = 0
    currency: str = "SGD"
    coupon_code: str = REWARD_COUPON_TAG
    discount_amount: int = 0
    source: Literal["reward"] = "reward"

    @property
    def reference_id(self) -> str:
        # una sola recompensa por negocio
        return f"badge_reward_{self.business_id}"

    @property
    def payment_intent_id(self) -> Optional[str]:
        return None


ActivationInput = Annotated[Union[PaidPurchase, RewardGrant], Field(discriminator="kind")]


class ActivationResult(BaseModel):
    status: Literal["activated", "duplicate"]
    entitlement_id: Optional[int] = None
    coupon: Literal["consumed", "skipped", "none"] = "none"


class FeaturedState(BaseModel):
    business_id: int
    featured: bool
    featured_until: Optional[datetime] = None
    repaired: bool = False


class EntitlementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_id: int
    user_id: str
    payment_reference: str
    payment_intent_id: Optional[str] = None
    amount_paid: int
    currency: str
    duration_months: int
    start_date: datetime
    expiry_date: datetime
    coupon_code: Optional[str] = None
    discount_amount: int
    source: str
    is_active: bool


class PriceOut(BaseModel):
    duration_months: int
    amount: int
    label: str
    description: str
    display: str


class CouponCreate(BaseModel):
    code: Optional[str] = None
    discount_type: Literal["percentage", "fixed"]
    discount_value: float = Field(..., gt=0)
    max_uses: Optional[int] = Field(default=None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    stripe_coupon_id: Optional[str] = None


class CouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    discount_type: str
    discount_value: float
    stripe_coupon_id: Optional[str] = None
    max_uses: Optional[int] = None
    times_used: int
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool
    created_by: Optional[str] = None


class CouponToggle(BaseModel):
    is_active: bool


class CouponValidateIn(BaseModel):
    code: str
    duration_months: int = 1
    now_iso: Optional[str] = None


class CouponValidateOut(BaseModel):
    code: str
    valid: bool
    reason: str
    amount: int
    discount: int
    new_total: int


class BacklinkSweepOut(BaseModel):
    checked: int
    verified: int
    rewarded: int
    business_ids: List[int] = Field(default_factory=list)
