from datetime import datetime
from typing import Dict, Optional

from dateutil.relativedelta import relativedelta

# Precios del listado destacado (centavos SGD). Misma tabla para Stripe y la UI.
FEATURED_PRICING: Dict[int, Dict[str, object]] = {
    1: {"amount": 2900, "label": "1 Month", "description": "1 month featured listing"},
    3: {"amount": 7500, "label": "3 Months", "description": "3 months featured listing - Save $12!"},
    6: {"amount": 14000, "label": "6 Months", "description": "6 months featured listing - Save $34!"},
}

ALLOWED_DURATIONS = tuple(sorted(FEATURED_PRICING))

# Mínimo que Stripe cobra en SGD (centavos)
MIN_CHARGE_AMOUNT = 50


def price_for(duration_months: int) -> Optional[Dict[str, object]]:
    return FEATURED_PRICING.get(int(duration_months))


def calculate_expiry(start: datetime, duration_months: int) -> datetime:
    # Meses calendario: 31-ene + 1 mes = 28/29-feb
    return start + relativedelta(months=int(duration_months))


def format_price(cents: int) -> str:
    return f"${cents / 100:.0f}"


def pricing_table():
    return [
        {
            "duration_months": months,
            "amount": int(p["amount"]),
            "label": str(p["label"]),
            "description": str(p["description"]),
            "display": format_price(int(p["amount"])),
        }
        for months, p in sorted(FEATURED_PRICING.items())
    ]
