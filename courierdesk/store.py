"""
store.py — Conditional writes for lifecycle-owned columns

Every status / claim change goes through compare_and_set: one UPDATE whose
WHERE clause carries the values the caller last observed. Exactly one row
changed means the write won; zero means someone else got there first.

Business Rules:
- A None in `expected` matches IS NULL
- Deleted (soft) rows never match
- The caller owns the transaction (commit / rollback)

Called by: services/request_service.py, services/resolution_service.py
Depends on: models
"""

from sqlalchemy import update
from sqlalchemy.orm import Session

from .database import utcnow


def compare_and_set(db: Session, model, entity_id: str, expected: dict, values: dict) -> bool:
    """UPDATE model SET values WHERE id = entity_id AND expected. True iff one row changed."""
    conditions = [model.id == entity_id]
    if hasattr(model, "deleted_at"):
        conditions.append(model.deleted_at.is_(None))
    for column, value in expected.items():
        attr = getattr(model, column)
        conditions.append(attr.is_(None) if value is None else attr == value)

    if hasattr(model, "updated_at") and "updated_at" not in values:
        values = {**values, "updated_at": utcnow()}

    result = db.execute(
        update(model)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
