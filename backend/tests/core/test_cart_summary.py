"""Cart Aggregation — verifies pure item mutations and the derived summary.

Tests:
    - compute_summary matches the item list (18% tax on subtotal)
    - add_item appends at quantity 1, bumps existing lines, refuses past the caps
    - set_item_quantity overwrites, removes at <= 0, refuses absent ids and > 10
    - remove_item is idempotent; mutations never touch their input
    - to_record / from_record keep every field
"""

from datetime import datetime, timedelta, timezone

import pytest

from storefront.core.cart_summary import (
    CartItem,
    ServiceSnapshot,
    add_item,
    clear_items,
    compute_summary,
    make_item,
    remove_item,
    set_item_quantity,
)
from storefront.core.domain_types import ServiceCategory, ServiceType
from storefront.core.errors import LimitExceededError, NotFoundError

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(minutes=5)


def _snapshot(service_id="svc-1", price=500.0) -> ServiceSnapshot:
    return ServiceSnapshot(
        service_id=service_id,
        name=f"Service {service_id}",
        description="Haircut and styling",
        price=price,
        image="https://cdn.example.test/haircut.png",
        category=ServiceCategory.REGULAR,
    )


# ─── compute_summary ────────────────────────────────────────────

def test_summary_of_empty_list_is_zero():
    summary = compute_summary([])
    assert summary.total_services == 0
    assert summary.total_items == 0
    assert summary.total == 0


def test_summary_totals():
    items = [
        make_item(_snapshot("a", 100.0), 2, NOW, NOW),
        make_item(_snapshot("b", 250.0), 1, NOW, NOW),
    ]
    summary = compute_summary(items)
    assert summary.total_services == 2
    assert summary.total_items == 3
    assert summary.subtotal == pytest.approx(450.0)
    assert summary.tax_amount == pytest.approx(81.0)
    assert summary.total == pytest.approx(531.0)


def test_make_item_subtotal_is_price_times_quantity():
    item = make_item(_snapshot(price=120.0), 3, NOW, NOW)
    assert item.subtotal == pytest.approx(360.0)


def test_make_item_rejects_quantity_over_cap():
    with pytest.raises(LimitExceededError):
        make_item(_snapshot(), 11, NOW, NOW)


def test_make_item_rejects_zero_quantity():
    with pytest.raises(ValueError):
        make_item(_snapshot(), 0, NOW, NOW)


# ─── add_item ───────────────────────────────────────────────────

def test_add_new_service_appends_quantity_one():
    items = add_item([], _snapshot(), NOW)
    assert len(items) == 1
    assert items[0].quantity == 1
    assert items[0].added_at == NOW


def test_add_existing_service_bumps_quantity():
    items = add_item([], _snapshot(price=200.0), NOW)
    items = add_item(items, _snapshot(price=200.0), LATER)
    assert len(items) == 1
    assert items[0].quantity == 2
    assert items[0].subtotal == pytest.approx(400.0)
    assert items[0].added_at == NOW
    assert items[0].last_modified == LATER


def test_add_keeps_original_snapshot():
    items = add_item([], _snapshot(price=200.0), NOW)
    items = add_item(items, _snapshot(price=999.0), LATER)
    assert items[0].price == 200.0


def test_add_at_quantity_cap_fails():
    items = [make_item(_snapshot(), 10, NOW, NOW)]
    with pytest.raises(LimitExceededError) as exc:
        add_item(items, _snapshot(), LATER)
    assert exc.value.limit_name == "quantity_per_item"


def test_add_twenty_first_service_fails():
    items = [make_item(_snapshot(f"s{i}"), 1, NOW, NOW) for i in range(20)]
    with pytest.raises(LimitExceededError) as exc:
        add_item(items, _snapshot("s20"), LATER)
    assert exc.value.limit_name == "services_per_cart"


def test_add_existing_service_at_twenty_lines_is_allowed():
    items = [make_item(_snapshot(f"s{i}"), 1, NOW, NOW) for i in range(20)]
    updated = add_item(items, _snapshot("s3"), LATER)
    assert updated[3].quantity == 2


def test_add_does_not_mutate_input():
    items = [make_item(_snapshot(), 1, NOW, NOW)]
    add_item(items, _snapshot(), LATER)
    assert items[0].quantity == 1


# ─── set_item_quantity / remove / clear ─────────────────────────

def test_set_quantity_overwrites():
    items = [make_item(_snapshot(price=50.0), 1, NOW, NOW)]
    updated = set_item_quantity(items, "svc-1", 7, LATER)
    assert updated[0].quantity == 7
    assert updated[0].subtotal == pytest.approx(350.0)


def test_set_quantity_zero_removes_line():
    items = [make_item(_snapshot("a"), 1, NOW, NOW), make_item(_snapshot("b"), 2, NOW, NOW)]
    updated = set_item_quantity(items, "a", 0, LATER)
    assert [i.service_id for i in updated] == ["b"]
    assert compute_summary(updated).total_items == 2


def test_set_quantity_negative_removes_line():
    items = [make_item(_snapshot(), 1, NOW, NOW)]
    assert set_item_quantity(items, "svc-1", -3, LATER) == []


def test_set_quantity_over_cap_fails():
    items = [make_item(_snapshot(), 1, NOW, NOW)]
    with pytest.raises(LimitExceededError):
        set_item_quantity(items, "svc-1", 11, LATER)


def test_set_quantity_absent_service_not_found():
    with pytest.raises(NotFoundError):
        set_item_quantity([], "missing", 2, LATER)


def test_remove_absent_service_is_noop():
    items = [make_item(_snapshot(), 1, NOW, NOW)]
    assert remove_item(items, "missing") == items


def test_remove_drops_line():
    items = [make_item(_snapshot(), 1, NOW, NOW)]
    assert remove_item(items, "svc-1") == []


def test_clear_items_is_empty():
    assert clear_items() == []
    assert compute_summary(clear_items()).subtotal == 0


# ─── records ────────────────────────────────────────────────────

def test_item_record_keeps_all_fields():
    snapshot = ServiceSnapshot(
        service_id="svc-9", name="Bridal makeup", description="Full package",
        price=15000.0, image="img.png", category=ServiceCategory.BRIDAL,
        service_type=ServiceType.DELUXE, duration="3 hours", tax_included=False,
    )
    item = make_item(snapshot, 2, NOW, LATER)
    record = item.to_record()
    assert record["category"] == "Bridal"
    assert record["service_type"] == "Deluxe"
    assert record["added_at"] == NOW.isoformat()
    assert CartItem.from_record(record) == item
