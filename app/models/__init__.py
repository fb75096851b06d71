"""ORM model registry: importing this module registers every table on Base.metadata.

``app.database.create_tables`` imports ``Base`` from here so that
``create_all`` sees all tables.  Application code can also do::

    from app.models import EntityRecordRow, EntityKind, ...
"""

# ── Enums ───────────────────────────────────────────────────────────────────
from app.models.enums import (
    AggregatorTypeEnum,
    AllocationStatusEnum,
    ChangeOperation,
    ContractStatusEnum,
    EntityKind,
    OrderSourceEnum,
    OrderStatusEnum,
    UserRoleEnum,
)

# ── Record storage ──────────────────────────────────────────────────────────
from app.models.records import Base, EntityRecordRow, EntitySequenceRow, TimestampMixin

__all__ = [
    "AggregatorTypeEnum",
    "AllocationStatusEnum",
    # Record storage
    "Base",
    "ChangeOperation",
    "ContractStatusEnum",
    # Enums
    "EntityKind",
    "EntityRecordRow",
    "EntitySequenceRow",
    "OrderSourceEnum",
    "OrderStatusEnum",
    "TimestampMixin",
    "UserRoleEnum",
]
