"""initial schema - users, requests, resolutions, pricing_rules, notifications

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

For EXISTING databases (created by startup create_all): `alembic stamp 001_initial`.
For NEW databases: `alembic upgrade head`.
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from the SQLAlchemy models (idempotent)."""
    from courierdesk.models import Base

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables. DESTRUCTIVE — only for dev/test environments."""
    from courierdesk.models import Base

    Base.metadata.drop_all(bind=op.get_bind())
