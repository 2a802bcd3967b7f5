"""
startup.py — Database Startup Migrations (Idempotent)

Tables and indexes are defined in the ORM models and created via
Base.metadata.create_all(checkfirst=True). This file also seeds the default
pricing rule when none exists.

Called by: main.py lifespan
Depends on: database.py (engine, SessionLocal), models, services/pricing_service
"""

import logging
import os

from .database import SessionLocal, engine

log = logging.getLogger("courierdesk.startup")


def run_startup_migrations() -> None:
    """Execute all idempotent startup operations. Safe to call on every app boot."""
    if os.environ.get("TESTING"):
        log.info("TESTING mode — skipping startup migrations")
        return

    from .models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
    log.info("ORM schema sync complete (create_all checkfirst=True)")

    _seed_pricing()
    log.info("Startup migrations complete")


def _seed_pricing() -> None:
    from .services.pricing_service import seed_default_rule

    db = SessionLocal()
    try:
        seed_default_rule(db)
    finally:
        db.close()
