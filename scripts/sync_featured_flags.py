"""
Recalcula is_featured / featured_expiry de todos los negocios desde featured_listing.
Uso: python scripts/sync_featured_flags.py
"""
from featured_listings.db import SessionLocal
from featured_listings.services.entitlements import sync_featured_flags


def main():
    s = SessionLocal()
    try:
        repaired = sync_featured_flags(s)
        print(f"SYNC -> repaired={repaired}")
    finally:
        s.close()


if __name__ == "__main__":
    main()
