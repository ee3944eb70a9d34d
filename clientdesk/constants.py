"""
Shared constants: store names, status and priority values, project types
and budget ranges.
"""
from enum import Enum


class StoreName:
    """Registry/persistence names of the entity stores."""
    CLIENTS = "clients"
    PROJECTS = "projects"
    QUOTES = "quotes"
    CONTRACTS = "contracts"
    TRANSACTIONS = "transactions"
    SETTLEMENTS = "settlements"
    WORK_ORDERS = "work_orders"
    DELIVERIES = "deliveries"
    CALENDAR = "calendar"
    SETTINGS = "settings"
    EMAIL_LOGS = "email_logs"
    DRIVE_LINKS = "drive_links"
    TEMPLATES = "templates"


# Stores whose records reference a project through projectId
DOCUMENT_STORE_NAMES = (StoreName.QUOTES, StoreName.CONTRACTS, StoreName.TRANSACTIONS)


class ProjectStatus(str, Enum):
    RECEIVED = "received"
    QUOTED = "quoted"
    CONTRACTED = "contracted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


ACTIVE_PROJECT_STATUSES = (
    ProjectStatus.RECEIVED.value,
    ProjectStatus.QUOTED.value,
    ProjectStatus.CONTRACTED.value,
    ProjectStatus.IN_PROGRESS.value,
)

TERMINAL_PROJECT_STATUSES = (
    ProjectStatus.COMPLETED.value,
    ProjectStatus.CANCELLED.value,
)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ClientType(str, Enum):
    CORPORATE = "corporate"
    INDIVIDUAL = "individual"


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


PROJECT_TYPES = (
    "product_design",
    "prototype",
    "consulting",
    "web_development",
    "mobile_app",
    "iot_solution",
    "maintenance",
    "training",
    "other",
)

# (value, min, max) in KRW; max is exclusive, None means unbounded
BUDGET_RANGES = (
    ("under_1m", 0, 1_000_000),
    ("1m_5m", 1_000_000, 5_000_000),
    ("5m_10m", 5_000_000, 10_000_000),
    ("10m_50m", 10_000_000, 50_000_000),
    ("50m_100m", 50_000_000, 100_000_000),
    ("over_100m", 100_000_000, None),
)

BUDGET_RANGE_VALUES = tuple(value for value, _, _ in BUDGET_RANGES)

UNASSIGNED = "unassigned"
