"""
Revisa backlinks de negocios reclamados y regala un mes destacado a quien lo tenga.
Pensado para cron diario. Uso: python scripts/verify_backlinks.py
"""
import logging

from featured_listings.db import SessionLocal
from featured_listings.services.rewards import process_backlink_verifications


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(name)s] %(levelname)s: %(message)s")
    s = SessionLocal()
    try:
        out = process_backlink_verifications(s)
        print(f"BACKLINKS -> checked={out.checked} verified={out.verified} rewarded={out.rewarded}")
    finally:
        s.close()


if __name__ == "__main__":
    main()
