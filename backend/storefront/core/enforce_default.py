"""Default Address Enforcement — pure decisions behind the one-default-per-owner rule.

Invariants:
    - decide_default_on_create is PURE: returns a decision, does NOT touch the store
    - A new address is default when ANY of: first active address, no active
      default exists, caller requested it. All reasons yield the same outcome
    - Reason precedence (advisory only): first_address > no_default_exists > user_specified
    - Capacity checks raise LimitExceededError once the owner holds
      MAX_ACTIVE_ADDRESSES active addresses
    - Soft delete never promotes another address

Design Decisions:
    - Shell (services/address_service.py) applies the clear-then-set writes;
      core only decides (functional core, imperative shell)
    - Reason kept separate from the boolean: the message layer needs it,
      the invariant does not
"""

from dataclasses import dataclass

from storefront.core.domain_types import DefaultReason, MAX_ACTIVE_ADDRESSES
from storefront.core.errors import ErrorContext, LimitExceededError


_CREATE_MESSAGES: dict[DefaultReason, str] = {
    DefaultReason.FIRST_ADDRESS: (
        "Address created successfully and set as default (first address)"
    ),
    DefaultReason.NO_DEFAULT_EXISTS: (
        "Address created successfully and set as default "
        "(no default address existed)"
    ),
    DefaultReason.USER_SPECIFIED: (
        "Address created successfully and set as default (user specified)"
    ),
    DefaultReason.NONE: "Address created successfully",
}


@dataclass(frozen=True)
class DefaultDecision:
    """Outcome of the create-time default rule."""
    should_be_default: bool
    reason: DefaultReason

    @property
    def message(self) -> str:
        return _CREATE_MESSAGES[self.reason]


def decide_default_on_create(
    active_count: int, has_existing_default: bool, requested_default: bool,
) -> DefaultDecision:
    """Decide whether a new address becomes the owner's default."""
    if active_count == 0:
        return DefaultDecision(True, DefaultReason.FIRST_ADDRESS)
    if not has_existing_default:
        return DefaultDecision(True, DefaultReason.NO_DEFAULT_EXISTS)
    if requested_default:
        return DefaultDecision(True, DefaultReason.USER_SPECIFIED)
    return DefaultDecision(False, DefaultReason.NONE)


def check_address_capacity(
    owner_id: str, active_count: int, action: str = "create",
) -> None:
    """Raise LimitExceededError when the owner has no room for another active address."""
    if active_count < MAX_ACTIVE_ADDRESSES:
        return
    if action == "restore":
        message = "Maximum address limit reached. Cannot restore this address."
    else:
        message = (
            f"Maximum address limit reached. You can have up to "
            f"{MAX_ACTIVE_ADDRESSES} addresses."
        )
    raise LimitExceededError(
        message, "active_addresses", MAX_ACTIVE_ADDRESSES,
        ErrorContext(owner_id=owner_id, debug_info={"active_count": active_count}),
    )


def soft_delete_message(was_default: bool) -> str:
    """User-facing message after a soft delete (no fallback default is chosen)."""
    if was_default:
        return (
            "Default address deleted successfully. "
            "You will be asked to select an address during booking."
        )
    return "Address deleted successfully"
