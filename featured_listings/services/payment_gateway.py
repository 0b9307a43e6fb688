"""Contrato con el procesador de pagos y su implementación sobre Stripe."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Protocol

import stripe

from ..core.config import settings
from ..core.errors import CheckoutRejected, PaymentProviderUnavailable

logger = logging.getLogger("featured.stripe")


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: Optional[str] = None


class PaymentGateway(Protocol):
    provider_name: str

    def create_checkout_session(self, params: Dict[str, Any]) -> CheckoutSession:
        """Abre una sesión de pago y devuelve el handle de redirección."""

    def list_paid_sessions(self, since: datetime) -> Iterator[Dict[str, Any]]:
        """Sesiones de checkout pagadas creadas desde `since`."""


def _as_dict(obj: Any) -> Dict[str, Any]:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class StripeGateway:
    provider_name = "stripe"

    # Errores en los que reintentar tiene sentido
    TRANSIENT = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)

    def __init__(self, api_key: str, timeout: float):
        self.api_key = api_key
        self.timeout = timeout
        # Llamada corta y sin reintentos internos: el cliente reintenta
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    def _require_key(self):
        if not self.api_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not configured")

    def create_checkout_session(self, params: Dict[str, Any]) -> CheckoutSession:
        self._require_key()
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except self.TRANSIENT as e:
            logger.warning("stripe unavailable creating checkout session: %s", e)
            raise PaymentProviderUnavailable(str(e)) from e
        except stripe.InvalidRequestError as e:
            # parámetros rechazados: reintentar no cambia nada
            logger.error("stripe rejected checkout session params=%s: %s", getattr(e, "param", None), e)
            raise CheckoutRejected("PAYMENT_REQUEST_REJECTED", 400) from e
        return CheckoutSession(session_id=session.id, url=getattr(session, "url", None))

    def list_paid_sessions(self, since: datetime) -> Iterator[Dict[str, Any]]:
        self._require_key()
        created_gte = int(since.replace(tzinfo=timezone.utc).timestamp())
        try:
            page = stripe.checkout.Session.list(
                api_key=self.api_key, created={"gte": created_gte}, limit=100
            )
            for session in page.auto_paging_iter():
                data = _as_dict(session)
                if data.get("payment_status") in ("paid", "no_payment_required"):
                    yield data
        except self.TRANSIENT as e:
            raise PaymentProviderUnavailable(str(e)) from e


_gateway: Optional[StripeGateway] = None


# Dependencia FastAPI (se reemplaza en tests)
def get_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = StripeGateway(settings.stripe_secret_key, settings.checkout_timeout_seconds)
    return _gateway
