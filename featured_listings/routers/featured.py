from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.schemas import EntitlementOut, FeaturedState, PriceOut
from ..db import get_db
from ..models.business import Business
from ..services.entitlements import current_featured_state, list_entitlements
from ..services.pricing import pricing_table

router = APIRouter(tags=["featured"])


@router.get("/featured/pricing", response_model=List[PriceOut])
def featured_pricing():
    return pricing_table()


@router.get("/businesses/{business_id}/featured", response_model=FeaturedState)
def business_featured(business_id: int, db: Session = Depends(get_db)):
    state = current_featured_state(db, business_id)
    if state is None:
        raise HTTPException(status_code=404, detail="BUSINESS_NOT_FOUND")
    return state


@router.get("/businesses/{business_id}/featured/history", response_model=List[EntitlementOut])
def business_featured_history(business_id: int, db: Session = Depends(get_db)):
    if db.get(Business, business_id) is None:
        raise HTTPException(status_code=404, detail="BUSINESS_NOT_FOUND")
    return list_entitlements(db, business_id)
