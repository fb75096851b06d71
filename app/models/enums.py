"""Domain enum types shared by schemas, the entity store and routes.

These are separate from the Pydantic StrEnum in app/config.py;
config enums validate settings, domain enums type record fields.
"""

from enum import StrEnum

# ── Entity kinds ────────────────────────────────────────────────────────────


class EntityKind(StrEnum):
    """Collections held by the entity store.

    The value doubles as the change-notifier channel prefix.
    """

    farmer = "farmer"
    aggregator = "aggregator"
    crop = "crop"
    order = "order"
    contract = "contract"
    allocation = "allocation"
    notification = "notification"
    supply_plan = "supply_plan"
    farm_visit = "farm_visit"
    advisory = "advisory"


class ChangeOperation(StrEnum):
    """Mutation kinds broadcast by the change notifier."""

    created = "created"
    updated = "updated"
    deleted = "deleted"


# ── Record field enums ──────────────────────────────────────────────────────


class AggregatorTypeEnum(StrEnum):
    internal = "internal"
    external = "external"


class OrderStatusEnum(StrEnum):
    """Procurement order lifecycle."""

    pending = "pending"
    ordered = "ordered"
    received = "received"
    completed = "completed"
    rejected = "rejected"


class OrderSourceEnum(StrEnum):
    """Where an order's produce was sourced from."""

    farmer = "farmer"
    aggregator = "aggregator"
    farmmall = "farmmall"


class ContractStatusEnum(StrEnum):
    draft = "draft"
    active = "active"
    completed = "completed"
    expired = "expired"


class AllocationStatusEnum(StrEnum):
    """Farmer-to-buyer supply allocation lifecycle."""

    scheduled = "scheduled"
    allocated = "allocated"
    completed = "completed"


# ── Auth enums ──────────────────────────────────────────────────────────────


class UserRoleEnum(StrEnum):
    """Principal roles; each maps to one dashboard."""

    admin = "admin"
    agronomist = "agronomist"
    procurement = "procurement"
    farmer = "farmer"
