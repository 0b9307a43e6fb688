"""
Re-aplica sesiones de Stripe pagadas en las últimas N horas (webhooks perdidos).
Uso: python scripts/reconcile_payments.py [--hours 48]
"""
import argparse
import logging
from datetime import timedelta

from featured_listings.db import SessionLocal
from featured_listings.services.entitlements import utcnow
from featured_listings.services.payment_gateway import get_gateway
from featured_listings.services.reconcile import reconcile_recent_sessions


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--hours", type=int, default=48)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    s = SessionLocal()
    try:
        counts = reconcile_recent_sessions(s, get_gateway(), utcnow() - timedelta(hours=args.hours))
        print("RECONCILE -> " + " ".join(f"{k}={v}" for k, v in counts.items()))
    finally:
        s.close()


if __name__ == "__main__":
    main()
