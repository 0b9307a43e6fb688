from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.errors import WebhookSignatureError
from ..db import get_db
from ..services.webhooks import process_webhook

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=500, detail="WEBHOOK_SECRET_NOT_CONFIGURED")

    # cuerpo crudo: la firma se calcula sobre los bytes exactos
    payload = await request.body()
    sig = request.headers.get("stripe-signature")
    try:
        status = await run_in_threadpool(process_webhook, db, payload, sig)
    except WebhookSignatureError:
        raise HTTPException(status_code=401, detail="INVALID_SIGNATURE")
    return {"received": True, "status": status}
