class CheckoutRejected(Exception):
    """Rechazo síncrono de un checkout (validación o autorización). Sin efectos."""

    def __init__(self, reason: str, status_code: int = 400):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class PaymentProviderUnavailable(Exception):
    """Stripe no respondió o respondió con error transitorio. Se puede reintentar."""


class WebhookSignatureError(Exception):
    """Firma ausente o inválida en un callback de Stripe."""


class RewardRejected(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ActivationFailed(Exception):
    """Un pago confirmado no pudo convertirse en listado destacado."""
