# backend/app/utils/constants.py
# Enumerations and fixed values shared across the API

from enum import Enum


class UserRole(str, Enum):
    """Account roles."""
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    """KYC review status of a business."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VehicleType(str, Enum):
    CAR = "car"
    BIKE = "bike"
    VAN = "van"


class OrderStatus(str, Enum):
    """Dispatch order lifecycle."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class DispatchStatus(str, Enum):
    PENDING = "pending"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Forward-only transitions; delivered and cancelled are terminal
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.ASSIGNED: {OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED},
    OrderStatus.IN_TRANSIT: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

ACTIVE_ORDER_STATUSES = [OrderStatus.ASSIGNED.value, OrderStatus.IN_TRANSIT.value]


class SalesPeriod(str, Enum):
    """Window selector for the dispatch sales trend."""
    LAST_24_HOURS = "24hours"
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    LAST_12_MONTHS = "12months"


DEFAULT_SALES_PERIOD = SalesPeriod.LAST_7_DAYS

# Mongo date operator used to bucket created_at for each period
PERIOD_BUCKET_OPERATORS = {
    SalesPeriod.LAST_24_HOURS: "$hour",
    SalesPeriod.LAST_7_DAYS: "$dayOfWeek",
    SalesPeriod.LAST_30_DAYS: "$dayOfMonth",
    SalesPeriod.LAST_12_MONTHS: "$month",
}

MS_PER_DAY = 1000 * 60 * 60 * 24

OTP_LENGTH = 6

# Collections
USERS = "users"
BUSINESSES = "businesses"
VEHICLES = "vehicles"
ORDERS = "orders"
SHIPMENTS = "shipments"
DRIVERS = "drivers"

# Upload folders in the bucket
PROOF_OF_ADDRESS_FOLDER = "sharperly/proof-of-address"
BUSINESS_LOGO_FOLDER = "sharperly/business-logos"
PROFILE_IMAGE_FOLDER = "sharperly/profile-images"
