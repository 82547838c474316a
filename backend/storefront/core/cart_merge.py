"""Cart Reconciliation — merge or replace server items with a client-held item list.

Invariants:
    - merge_client_items: server wins on key conflicts; client items only fill
      gaps (service_ids absent server-side), appended in client order
    - Appended items are stamped added_at = now and
      subtotal = price * quantity; a missing quantity means 1
    - Duplicate service_ids inside the client list: first occurrence wins
    - Merging the same client list twice adds nothing the second time
    - replace_items: client list becomes the item list; client added_at kept
      when supplied

Design Decisions:
    - Server is the durable source of truth; client state (local storage) may be
      stale, so client values never overwrite server lines field-by-field
    - ClientCartItem separate from CartItem: client input carries no subtotal
      or timestamps the server trusts
"""

from dataclasses import dataclass
from datetime import datetime

from storefront.core.cart_summary import CartItem, ServiceSnapshot, make_item


@dataclass(frozen=True)
class ClientCartItem:
    """An item as held by the client (already validated at the boundary)."""
    snapshot: ServiceSnapshot
    quantity: int | None = None
    added_at: datetime | None = None

    @property
    def service_id(self) -> str:
        return self.snapshot.service_id


def _dedupe(client_items: list[ClientCartItem]) -> list[ClientCartItem]:
    seen: set[str] = set()
    unique = []
    for item in client_items:
        if item.service_id in seen:
            continue
        seen.add(item.service_id)
        unique.append(item)
    return unique


def _stamp(item: ClientCartItem, added_at: datetime, now: datetime) -> CartItem:
    return make_item(item.snapshot, item.quantity or 1, added_at, now)


def merge_client_items(
    server_items: list[CartItem],
    client_items: list[ClientCartItem],
    now: datetime,
) -> tuple[list[CartItem], list[str]]:
    """Append client items missing server-side. Returns (items, appended service_ids)."""
    present = {item.service_id for item in server_items}
    appended = [
        _stamp(item, now, now)
        for item in _dedupe(client_items)
        if item.service_id not in present
    ]
    return [*server_items, *appended], [i.service_id for i in appended]


def replace_items(
    client_items: list[ClientCartItem], now: datetime,
) -> list[CartItem]:
    """Client list replaces the server list wholesale."""
    return [
        _stamp(item, item.added_at or now, now)
        for item in _dedupe(client_items)
    ]
