from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..core.errors import CheckoutRejected, PaymentProviderUnavailable
from ..core.schemas import CheckoutIn, CheckoutOut
from ..db import get_db
from ..services.checkout import create_checkout
from ..services.payment_gateway import PaymentGateway, get_gateway

router = APIRouter(prefix="/featured", tags=["featured-checkout"])


@router.post("/checkout", response_model=CheckoutOut)
def featured_checkout(
    body: CheckoutIn,
    x_user: Optional[str] = Header(default=None, alias="X-User", convert_underscores=False),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        return create_checkout(db, gateway, body, x_user)
    except CheckoutRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason)
    except PaymentProviderUnavailable:
        raise HTTPException(status_code=503, detail="PAYMENT_PROVIDER_UNAVAILABLE")
