"""
API del listado destacado: checkout, webhook de Stripe y estado vigente.

Usage:
    uvicorn featured_listings.main:app --host 127.0.0.1 --port 8010
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .db import Base, engine
from .routers import checkout, coupons, featured, health, stripe_webhook

# IMPORTA MODELOS antes de create_all
from .models import business as _business_models
from .models import coupon as _coupon_models
from .models import featured as _featured_models

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("featured.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Crea tablas faltantes (desarrollo)
    Base.metadata.create_all(bind=engine)
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.app_env)
    if not settings.stripe_webhook_secret:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; /stripe/webhook will answer 500")
    yield
    logger.info("Shutting down %s", settings.app_name)


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

app.include_router(health.router)
app.include_router(featured.router)
app.include_router(checkout.router)
app.include_router(stripe_webhook.router)
app.include_router(coupons.router)
