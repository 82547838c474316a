"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - OwnerId, ServiceId are opaque strings; AddressId, CartId wrap UUIDs
    - All closed value sets encoded as str Enums — no raw string matching
    - Business caps (addresses per owner, quantity per item, services per cart)
      live here as the single source of truth

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (API + JSON item column)
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

OwnerId = NewType("OwnerId", str)
AddressId = NewType("AddressId", UUID)
CartId = NewType("CartId", UUID)
ServiceId = NewType("ServiceId", str)


# ─── Business Caps ───────────────────────────────────────────────

MAX_ACTIVE_ADDRESSES: int = 10
MAX_QUANTITY_PER_ITEM: int = 10
MAX_SERVICES_PER_CART: int = 20
TAX_RATE: float = 0.18   # GST


# ─── Enums ───────────────────────────────────────────────────────

class AddressType(str, Enum):
    """Address classification."""
    HOME = "home"
    OFFICE = "office"
    OTHER = "other"


class ServiceCategory(str, Enum):
    """Catalogue category captured in the cart snapshot."""
    REGULAR = "Regular"
    PREMIUM = "Premium"
    BRIDAL = "Bridal"
    CLASSIC = "Classic"
    DEFAULT = "default"


class ServiceType(str, Enum):
    """Service tier captured in the cart snapshot."""
    STANDARD = "Standard"
    PREMIUM = "Premium"
    DELUXE = "Deluxe"


class DefaultReason(str, Enum):
    """Why a newly created address became default. Advisory only."""
    FIRST_ADDRESS = "first_address"
    NO_DEFAULT_EXISTS = "no_default_exists"
    USER_SPECIFIED = "user_specified"
    NONE = "none"
