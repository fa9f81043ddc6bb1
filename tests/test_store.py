"""
Tests for the optimistic command layer.

Commands schedule their remote writes on the running loop, so each test
drives them inside asyncio.run().
"""

import asyncio
import base64
import json
from datetime import date
from decimal import Decimal

import pytest

from household_ledger.models.audit import AuditEventType
from household_ledger.models.household import (
    DEFAULT_CATEGORIES,
    DEFAULT_STORES,
    LOCAL_FAMILY_ID,
    Frequency,
)
from household_ledger.services.storage import Collection
from household_ledger.snapshot import SnapshotDecodeError
from household_ledger.state import NoActiveProfileError, UnknownEntityError
from household_ledger.validation import EntryValidationError

from conftest import FailingGateway, HangingGateway, build_store


def _event_types(audit_logger):
    return [event.event_type for event in audit_logger.recent_events(limit=200)]


class TestExpenseCommands:
    """Tests for adding, editing and deleting expenses."""

    def test_add_expense_is_visible_immediately(self):
        """Test that local state changes before the remote write finishes."""
        store, _, _ = build_store(HangingGateway())

        async def scenario():
            result = store.add_expense(product="Milk", store="Coop", total="1.50")
            assert store.expenses[0] is result.entity
            assert result.remote is not None
            assert not result.remote.done()
            assert store.mirror.pending_count > 0

        asyncio.run(scenario())

    def test_add_expense_is_mirrored(self):
        store, gateway, _ = build_store()

        async def scenario():
            result = store.add_expense(product="Milk", store="Coop", total="1.50")
            assert await result.mirrored()
            return result.entity

        expense = asyncio.run(scenario())
        rows = gateway.rows(Collection.EXPENSES)
        assert rows[0]["id"] == expense.id
        assert rows[0]["family_id"] == "fam-1"
        assert [r["name"] for r in gateway.rows(Collection.STORES)] == ["Coop"]

    def test_new_expense_goes_to_head(self):
        store, _, _ = build_store()

        async def scenario():
            store.add_expense(product="Milk", store="Coop", total="1.50")
            store.add_expense(product="Bread", store="Coop", total="2")
            await store.drain()

        asyncio.run(scenario())
        assert [e.product for e in store.expenses] == ["Bread", "Milk"]

    def test_total_only_back_computes_unit_price(self):
        store, _, _ = build_store()

        async def scenario():
            return store.add_expense(product="Eggs", store="Coop", total="10", quantity=3)

        expense = asyncio.run(scenario()).entity
        assert expense.unit_price == Decimal("3.33")
        assert expense.total == Decimal("10")

    def test_price_only_computes_total(self):
        store, _, _ = build_store()

        async def scenario():
            return store.add_expense(product="Eggs", store="Coop", quantity=2, unit_price="1.25")

        expense = asyncio.run(scenario()).entity
        assert expense.total == Decimal("2.50")

    def test_missing_category_uses_default(self):
        store, _, _ = build_store()

        async def scenario():
            return store.add_expense(product="Eggs", store="Coop", total=2)

        assert asyncio.run(scenario()).entity.category == "Other"

    def test_known_store_is_not_added_again(self):
        store, gateway, _ = build_store()

        async def scenario():
            store.add_expense(product="Milk", store="Coop", total=1)
            store.add_expense(product="Eggs", store="coop ", total=2)
            await store.drain()

        asyncio.run(scenario())
        assert len(store.stores) == 1
        assert len(gateway.rows(Collection.STORES)) == 1

    def test_invalid_expense_changes_nothing(self):
        store, _, audit_logger = build_store()

        async def scenario():
            with pytest.raises(EntryValidationError):
                store.add_expense(product="", store="Coop", total=1)

        asyncio.run(scenario())
        assert store.expenses == ()
        assert AuditEventType.VALIDATION_FAILED in _event_types(audit_logger)

    def test_overlong_product_is_an_entry_error(self):
        store, _, _ = build_store()

        async def scenario():
            with pytest.raises(EntryValidationError, match="200 characters"):
                store.add_expense(product="x" * 201, store="Coop", total="1")

        asyncio.run(scenario())
        assert store.expenses == ()

    def test_model_constraint_is_an_entry_error(self):
        """Test that limits only the models check still surface as entry errors."""
        store, _, audit_logger = build_store()

        async def scenario():
            with pytest.raises(EntryValidationError) as raised:
                store.add_expense(product="Milk", store="Coop", total="1", date="last tuesday")
            with pytest.raises(EntryValidationError):
                store.add_recurring(
                    product="Rent", amount="800", store="Landlord", frequency="monthly",
                    next_due_date="2024-04-01", custom_fields=[{"label": "x" * 101}],
                )
            return raised.value

        error = asyncio.run(scenario())
        assert error.result.issues[0].field == "date"
        assert store.expenses == ()
        assert store.recurring_expenses == ()
        assert _event_types(audit_logger).count(AuditEventType.VALIDATION_FAILED) == 2

    def test_high_amount_warns_but_applies(self):
        store, _, _ = build_store()

        async def scenario():
            return store.add_expense(product="Sofa", store="Ikea", total="12000")

        result = asyncio.run(scenario())
        assert result.warnings
        assert store.expenses[0].product == "Sofa"

    def test_batch_lands_at_head_in_order(self):
        """Test that receipt lines keep their order ahead of older expenses."""
        store, gateway, _ = build_store()

        async def scenario():
            store.add_expense(product="Old", store="Coop", total=1)
            result = store.add_expenses_batch([
                {"product": "A", "store": "Lidl", "total": 1},
                {"product": "B", "store": "Lidl", "total": 2},
                {"product": "C", "store": "Lidl", "total": 3},
            ])
            assert await result.mirrored()
            await store.drain()

        asyncio.run(scenario())
        assert [e.product for e in store.expenses] == ["A", "B", "C", "Old"]
        assert len(gateway.rows(Collection.EXPENSES)) == 4

    def test_batch_validates_every_entry_first(self):
        store, _, _ = build_store()

        async def scenario():
            with pytest.raises(EntryValidationError):
                store.add_expenses_batch([
                    {"product": "A", "store": "Lidl", "total": 1},
                    {"product": "B", "store": "Lidl"},
                ])

        asyncio.run(scenario())
        assert store.expenses == ()

    def test_update_keeps_position_and_sends_patch(self):
        store, gateway, _ = build_store()

        async def scenario():
            first = store.add_expense(product="Milk", store="Coop", total=1).entity
            store.add_expense(product="Bread", store="Coop", total=2)
            await store.drain()
            result = store.update_expense(first.id, total=Decimal("1.20"), category="Groceries")
            assert await result.mirrored()
            return first

        first = asyncio.run(scenario())
        assert store.expenses[1].id == first.id
        assert store.expenses[1].total == Decimal("1.20")
        row = next(r for r in gateway.rows(Collection.EXPENSES) if r["id"] == first.id)
        assert row["total"] == "1.20"
        assert row["category"] == "Groceries"

    def test_update_rejects_unknown_field(self):
        store, _, _ = build_store()

        async def scenario():
            expense = store.add_expense(product="Milk", store="Coop", total=1).entity
            with pytest.raises(ValueError):
                store.update_expense(expense.id, id="other")

        asyncio.run(scenario())

    def test_update_unknown_id(self):
        store, _, _ = build_store()
        with pytest.raises(UnknownEntityError):
            store.update_expense("missing", total=1)

    def test_delete_requires_confirmation(self):
        store, _, _ = build_store()

        async def scenario():
            expense = store.add_expense(product="Milk", store="Coop", total=1).entity
            assert store.delete_expense(expense.id, lambda e: False) is None
            assert len(store.expenses) == 1
            result = store.delete_expense(expense.id, lambda e: e.product == "Milk")
            assert await result.mirrored()

        asyncio.run(scenario())
        assert store.expenses == ()


class TestRemoteFailures:
    """Tests that remote failures never touch local state."""

    def test_failed_insert_keeps_local_entity(self):
        store, _, audit_logger = build_store(FailingGateway())

        async def scenario():
            result = store.add_expense(product="Milk", store="Coop", total=1)
            assert not await result.mirrored()

        asyncio.run(scenario())
        assert len(store.expenses) == 1
        assert store.mirror.failures
        assert AuditEventType.MIRROR_WRITE_FAILED in _event_types(audit_logger)

    def test_no_session_is_local_only(self):
        store, gateway, _ = build_store(tenant_id=None)

        async def scenario():
            result = store.add_expense(product="Milk", store="Coop", total=1)
            assert result.remote is None

        asyncio.run(scenario())
        assert gateway.rows(Collection.EXPENSES) == []

    def test_local_family_is_not_mirrored(self):
        store, gateway, _ = build_store(tenant_id=LOCAL_FAMILY_ID)

        async def scenario():
            return store.add_shopping_item("Milk", "Coop")

        assert asyncio.run(scenario()).remote is None
        assert gateway.rows(Collection.SHOPPING_LIST) == []


class TestOtherCollections:

    def test_income_add_and_delete(self):
        store, gateway, _ = build_store()

        async def scenario():
            income = store.add_income("Salary", "1500", date(2024, 3, 1)).entity
            await store.drain()
            assert len(gateway.rows(Collection.INCOMES)) == 1
            store.delete_income(income.id)
            await store.drain()

        asyncio.run(scenario())
        assert store.incomes == ()
        assert gateway.rows(Collection.INCOMES) == []

    def test_add_store_dedupes(self):
        store, _, _ = build_store()

        async def scenario():
            first = store.add_store("Coop").entity
            again = store.add_store(" COOP ")
            assert again.entity is first
            assert again.remote is None

        asyncio.run(scenario())

    def test_category_add_and_delete(self):
        store, _, _ = build_store()

        async def scenario():
            category = store.add_category("Pets", "paw-print", "bg-teal-100 text-teal-600").entity
            assert store.lookup_category("pets").found
            store.delete_category(category.id)

        asyncio.run(scenario())
        assert not store.lookup_category("Pets").found

    def test_shopping_toggle_and_clear(self):
        store, gateway, _ = build_store()

        async def scenario():
            milk = store.add_shopping_item("Milk", "Coop").entity
            store.add_shopping_item("Eggs", "Coop")
            store.toggle_shopping_item(milk.id)
            await store.drain()
            row = next(r for r in gateway.rows(Collection.SHOPPING_LIST) if r["id"] == milk.id)
            assert row["completed"] == "TRUE"
            cleared = store.clear_completed_shopping_items()
            assert [i.product for i in cleared.entity] == ["Milk"]
            await store.drain()

        asyncio.run(scenario())
        assert [i.product for i in store.shopping_list] == ["Eggs"]
        assert [i.product for i in store.pending_shopping_items()] == ["Eggs"]

    def test_clear_with_nothing_completed(self):
        store, _, _ = build_store()
        result = store.clear_completed_shopping_items()
        assert result.entity == ()
        assert result.remote is None


class TestRecurringCommands:
    """Tests for recurring bills and their payment."""

    def test_process_recurring(self):
        """Test that paying a bill records an expense and advances the date."""
        store, gateway, audit_logger = build_store()

        async def scenario():
            bill = store.add_recurring(
                "Rent", "800", "Landlord", Frequency.MONTHLY, date(2024, 1, 31), 3,
                [{"label": "Contract", "value": "A-12"}],
            ).entity
            await store.drain()
            result = store.process_recurring(bill.id)
            assert await result.mirrored()
            return result.entity

        expense, advanced = asyncio.run(scenario())
        assert store.expenses[0] is expense
        assert expense.total == Decimal("800")
        assert expense.store == "Landlord"
        assert advanced.next_due_date == date(2024, 2, 29)
        assert store.recurring_expenses[0].next_due_date == date(2024, 2, 29)
        row = gateway.rows(Collection.RECURRING_EXPENSES)[0]
        assert row["next_due_date"] == "2024-02-29"
        assert AuditEventType.RECURRING_PROCESSED in _event_types(audit_logger)

    def test_update_recurring(self):
        store, _, _ = build_store()

        async def scenario():
            bill = store.add_recurring(
                "Gym", 40, "Gym", "monthly", "2024-03-15",
            ).entity
            return store.update_recurring(bill.id, amount=Decimal("45")).entity

        assert asyncio.run(scenario()).amount == Decimal("45")

    def test_long_reminder_warns(self):
        store, _, _ = build_store()

        async def scenario():
            return store.add_recurring("Gym", 40, "Gym", "weekly", "2024-03-15", 10)

        assert asyncio.run(scenario()).warnings

    def test_due_recurring_view(self):
        store, _, _ = build_store(today=date(2024, 3, 10))

        async def scenario():
            store.add_recurring("Rent", 800, "Landlord", "monthly", "2024-03-12", 5)
            store.add_recurring("Car tax", 200, "State", "yearly", "2024-06-01", 10)

        asyncio.run(scenario())
        assert [item.product for item in store.due_recurring()] == ["Rent"]

    def test_delete_recurring(self):
        store, _, _ = build_store()

        async def scenario():
            bill = store.add_recurring("Gym", 40, "Gym", "monthly", "2024-03-15").entity
            store.delete_recurring(bill.id)

        asyncio.run(scenario())
        assert store.recurring_expenses == ()


class TestSnapshotRoundTrip:
    """Tests for manual device-to-device sync."""

    def test_export_then_import_on_another_device(self):
        source, _, _ = build_store()

        async def fill():
            source.add_expense(product="Milk", store="Coop", total="1.50")
            source.add_income("Salary", 1000, "2024-03-01")

        asyncio.run(fill())
        token = source.export_snapshot_token()

        target, target_gateway, audit_logger = build_store(tenant_id=None)
        imported = target.import_snapshot_token(token, lambda snapshot: True)
        assert imported is not None
        assert [e.product for e in target.expenses] == ["Milk"]
        assert target.expenses[0].total == Decimal("1.50")
        assert target.profile.id == "fam-1"
        assert target.categories == DEFAULT_CATEGORIES
        assert target_gateway.rows(Collection.EXPENSES) == []
        assert AuditEventType.SNAPSHOT_IMPORTED in _event_types(audit_logger)

    def test_declined_import_changes_nothing(self):
        source, _, _ = build_store()
        token = source.export_snapshot_token()
        target, _, _ = build_store(tenant_id=None)
        assert target.import_snapshot_token(token, lambda snapshot: False) is None
        assert target.profile is None

    def test_bad_token_never_reaches_confirm(self):
        store, _, audit_logger = build_store()
        asked = []

        with pytest.raises(SnapshotDecodeError):
            store.import_snapshot_token("not a token", asked.append)

        assert asked == []
        assert AuditEventType.SNAPSHOT_REJECTED in _event_types(audit_logger)

    def test_import_without_profile_id_is_local(self):
        payload = {"expenses": [], "familyProfile": {"familyName": "Rossi"}}
        token = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
        store, _, _ = build_store(tenant_id=None)
        store.import_snapshot_token(token, lambda snapshot: True)
        assert store.profile.id == LOCAL_FAMILY_ID
        assert store.stores == DEFAULT_STORES

    def test_export_without_profile(self):
        store, _, _ = build_store(tenant_id=None)
        with pytest.raises(NoActiveProfileError):
            store.export_snapshot_token()


class TestProfileCommands:

    def test_set_google_sheet_url(self):
        saved = []
        store, gateway, _ = build_store(on_profile_change=saved.append)

        async def scenario():
            await gateway.create_profile(store.profile)
            result = store.set_google_sheet_url(" https://docs.google.com/x ")
            assert await result.mirrored()

        asyncio.run(scenario())
        assert store.profile.google_sheet_url == "https://docs.google.com/x"
        assert saved[0].google_sheet_url == "https://docs.google.com/x"
        stored = asyncio.run(gateway.get_profile("fam-1"))
        assert stored.google_sheet_url == "https://docs.google.com/x"

    def test_set_url_without_profile(self):
        store, _, _ = build_store(tenant_id=None)
        with pytest.raises(NoActiveProfileError):
            store.set_google_sheet_url("x")


class TestMemoizedViews:
    """Tests that views recompute only after their collections change."""

    def test_view_cached_until_mutation(self):
        store, _, _ = build_store()

        async def add(product):
            store.add_expense(product=product, store="Coop", total=1)

        asyncio.run(add("Milk"))
        first = store.filtered_expenses()
        assert store.filtered_expenses() is first

        asyncio.run(add("Eggs"))
        second = store.filtered_expenses()
        assert second is not first
        assert {e.product for e in second} == {"Milk", "Eggs"}

    def test_balance_view(self):
        store, _, _ = build_store()

        async def scenario():
            store.add_income("Salary", 100, "2024-03-01")
            store.add_expense(product="Milk", store="Coop", total="1.50")

        asyncio.run(scenario())
        assert store.balance().balance == Decimal("98.50")

    def test_cached_views_are_read_only(self):
        store, _, _ = build_store()

        async def scenario():
            store.add_expense(product="Milk", store="Coop", total="1.50", date="2024-03-01T10:00:00")

        asyncio.run(scenario())
        with pytest.raises(TypeError):
            store.product_history()["Milk"] = "Lidl"
        assert store.product_history()["Milk"] == "Coop"
        assert isinstance(store.monthly_totals(), tuple)
        assert isinstance(store.category_totals(), tuple)
        assert isinstance(store.store_totals(), tuple)
