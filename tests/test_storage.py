"""
Tests for the storage layer.

The Google Sheets gateway runs against an in-process fake spreadsheet, so
the real client code (worksheet creation, header-keyed reads, row lookup)
is exercised without any network access.
"""

import asyncio
from datetime import date
from decimal import Decimal

import gspread
import pytest

from household_ledger.models.household import (
    CategoryDefinition,
    CustomField,
    Expense,
    FamilyProfile,
    Frequency,
    Member,
    RecurringExpense,
    ShoppingItem,
)
from household_ledger.services.storage import (
    Collection,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsStoreGateway,
    InMemoryStoreGateway,
    NotFoundError,
    StorageError,
)
from household_ledger.services.storage.mapping import (
    COLLECTION_COLUMNS,
    entity_to_row,
    patch_to_cells,
    row_to_entity,
    to_cell,
)


RENT = RecurringExpense(
    id="r1",
    product="Rent",
    amount=Decimal("800.00"),
    store="Landlord",
    frequency=Frequency.MONTHLY,
    next_due_date=date(2024, 4, 1),
    reminder_days=3,
    custom_fields=[CustomField(label="Contract", value="A-12")],
)


class TestRowMapping:
    """Tests for model <-> row conversion."""

    def test_cells_are_text(self):
        assert to_cell(None) == ""
        assert to_cell(True) == "TRUE"
        assert to_cell(Decimal("1.50")) == "1.50"
        assert to_cell(Frequency.WEEKLY) == "weekly"
        assert to_cell(date(2024, 4, 1)) == "2024-04-01"

    def test_row_carries_tenant_column(self):
        row = entity_to_row(Collection.RECURRING_EXPENSES, "fam-1", RENT)
        assert row["family_id"] == "fam-1"
        assert row["next_due_date"] == "2024-04-01"
        assert set(row) == set(COLLECTION_COLUMNS[Collection.RECURRING_EXPENSES])

    def test_row_back_to_entity(self):
        row = entity_to_row(Collection.RECURRING_EXPENSES, "fam-1", RENT)
        assert row_to_entity(Collection.RECURRING_EXPENSES, row) == RENT

    def test_boolean_and_empty_cells(self):
        row = {"id": "s1", "family_id": "fam-1", "product": "Milk", "store": "Coop", "completed": "TRUE"}
        item = row_to_entity(Collection.SHOPPING_LIST, row)
        assert item.completed is True

        expense = row_to_entity(Collection.EXPENSES, {
            "id": "e1", "family_id": "fam-1", "product": "Milk", "total": "1.50",
            "store": "Coop", "date": "2024-03-10T08:00:00.000Z", "member_id": "",
        })
        assert expense.member_id is None
        assert expense.quantity == Decimal("1")

    def test_patch_rejects_id_and_tenant(self):
        with pytest.raises(StorageError):
            patch_to_cells(Collection.EXPENSES, {"id": "x"})
        with pytest.raises(StorageError):
            patch_to_cells(Collection.EXPENSES, {"family_id": "other"})
        with pytest.raises(StorageError):
            patch_to_cells(Collection.EXPENSES, {"colour": "red"})


class TestInMemoryGateway:
    """Tests for the in-memory remote store."""

    def test_fetch_is_tenant_scoped(self):
        gateway = InMemoryStoreGateway()

        async def scenario():
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", ShoppingItem(product="Milk", store="Coop"))
            await gateway.insert(Collection.SHOPPING_LIST, "fam-2", ShoppingItem(product="Soap", store="Coop"))
            return await gateway.fetch_all(Collection.SHOPPING_LIST, "fam-1")

        items = asyncio.run(scenario())
        assert [i.product for i in items] == ["Milk"]

    def test_insert_duplicate(self):
        gateway = InMemoryStoreGateway()
        category = CategoryDefinition(id="c1", name="Pets")

        async def scenario():
            await gateway.insert(Collection.CATEGORIES, "fam-1", category)
            await gateway.insert(Collection.CATEGORIES, "fam-1", category)

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_update_and_delete(self):
        gateway = InMemoryStoreGateway()

        async def scenario():
            await gateway.insert(Collection.RECURRING_EXPENSES, "fam-1", RENT)
            await gateway.update(Collection.RECURRING_EXPENSES, "r1", {"next_due_date": date(2024, 5, 1)})
            fetched = await gateway.fetch_all(Collection.RECURRING_EXPENSES, "fam-1")
            deleted = await gateway.delete(Collection.RECURRING_EXPENSES, "r1")
            missing = await gateway.delete(Collection.RECURRING_EXPENSES, "r1")
            return fetched, deleted, missing

        fetched, deleted, missing = asyncio.run(scenario())
        assert fetched[0].next_due_date == date(2024, 5, 1)
        assert fetched[0].custom_fields == RENT.custom_fields
        assert deleted is True
        assert missing is False

    def test_update_unknown_id(self):
        gateway = InMemoryStoreGateway()
        with pytest.raises(NotFoundError):
            asyncio.run(gateway.update(Collection.EXPENSES, "nope", {"total": 1}))

    def test_profile_lifecycle(self):
        gateway = InMemoryStoreGateway()
        profile = FamilyProfile(
            id="fam-1",
            family_name="Rossi",
            members=[Member(id="m1", name="Anna", is_admin=True), Member(id="m2", name="Luca")],
            created_at=1710000000000,
        )

        async def scenario():
            assert await gateway.get_profile("fam-1") is None
            await gateway.create_profile(profile)
            await gateway.update_profile("fam-1", {"google_sheet_url": "https://example.org/sheet"})
            return await gateway.get_profile("fam-1")

        stored = asyncio.run(scenario())
        assert stored.family_name == "Rossi"
        assert [m.name for m in stored.members] == ["Anna", "Luca"]
        assert stored.members[0].is_admin is True
        assert stored.created_at == 1710000000000
        assert stored.google_sheet_url == "https://example.org/sheet"


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the gateway."""

    def __init__(self, title):
        self.title = title
        self.values = []

    def get_all_values(self):
        return [list(row) for row in self.values]

    def append_row(self, row, value_input_option=None):
        self.values.append(list(row))

    def append_rows(self, rows, value_input_option=None):
        for row in rows:
            self.append_row(row)

    def update_cell(self, row, col, value):
        self.values[row - 1][col - 1] = value

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSpreadsheet:

    def __init__(self):
        self.sheets = {}

    def worksheet(self, title):
        if title not in self.sheets:
            raise gspread.WorksheetNotFound(title)
        return self.sheets[title]

    def add_worksheet(self, title, rows, cols):
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


class FakeSheetsClient(GoogleSheetsClient):

    def __init__(self):
        super().__init__()
        self._spreadsheet = FakeSpreadsheet()

    def get_spreadsheet(self):
        return self._spreadsheet


@pytest.fixture
def sheets_gateway(monkeypatch, tmp_path):
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
    monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")
    client = FakeSheetsClient()
    return GoogleSheetsStoreGateway(client=client), client


class TestGoogleSheetsGateway:
    """Tests for the Google Sheets gateway against a fake spreadsheet."""

    def test_insert_creates_sheet_with_header(self, sheets_gateway):
        gateway, client = sheets_gateway
        expense = Expense(id="e1", product="Milk", total=Decimal("1.50"), store="Coop",
                          date="2024-03-10T08:00:00.000Z")

        asyncio.run(gateway.insert(Collection.EXPENSES, "fam-1", expense))

        values = client.get_spreadsheet().sheets["expenses"].values
        assert values[0] == COLLECTION_COLUMNS[Collection.EXPENSES]
        assert values[1][:3] == ["e1", "fam-1", "Milk"]

    def test_fetch_skips_other_tenants_and_bad_rows(self, sheets_gateway):
        gateway, client = sheets_gateway

        async def scenario():
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", ShoppingItem(id="s1", product="Milk", store="Coop"))
            await gateway.insert(Collection.SHOPPING_LIST, "fam-2", ShoppingItem(id="s2", product="Soap", store="Coop"))
            client.get_spreadsheet().sheets["shopping_list"].append_row(["s3", "fam-1", "", "", ""])
            return await gateway.fetch_all(Collection.SHOPPING_LIST, "fam-1")

        items = asyncio.run(scenario())
        assert [i.id for i in items] == ["s1"]

    def test_update_touches_patched_cells(self, sheets_gateway):
        gateway, client = sheets_gateway

        async def scenario():
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", ShoppingItem(id="s1", product="Milk", store="Coop"))
            await gateway.update(Collection.SHOPPING_LIST, "s1", {"completed": True})
            return await gateway.fetch_all(Collection.SHOPPING_LIST, "fam-1")

        items = asyncio.run(scenario())
        assert items[0].completed is True
        row = client.get_spreadsheet().sheets["shopping_list"].values[1]
        assert row[COLLECTION_COLUMNS[Collection.SHOPPING_LIST].index("completed")] == "TRUE"

    def test_update_missing_row(self, sheets_gateway):
        gateway, _ = sheets_gateway
        with pytest.raises(NotFoundError):
            asyncio.run(gateway.update(Collection.SHOPPING_LIST, "nope", {"completed": True}))

    def test_duplicate_insert(self, sheets_gateway):
        gateway, _ = sheets_gateway
        item = ShoppingItem(id="s1", product="Milk", store="Coop")

        async def scenario():
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", item)
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", item)

        with pytest.raises(DuplicateError):
            asyncio.run(scenario())

    def test_delete(self, sheets_gateway):
        gateway, _ = sheets_gateway

        async def scenario():
            await gateway.insert(Collection.SHOPPING_LIST, "fam-1", ShoppingItem(id="s1", product="Milk", store="Coop"))
            first = await gateway.delete(Collection.SHOPPING_LIST, "s1")
            second = await gateway.delete(Collection.SHOPPING_LIST, "s1")
            remaining = await gateway.fetch_all(Collection.SHOPPING_LIST, "fam-1")
            return first, second, remaining

        assert asyncio.run(scenario()) == (True, False, [])

    def test_profile_round_trip(self, sheets_gateway):
        gateway, _ = sheets_gateway
        profile = FamilyProfile(id="fam-1", family_name="Rossi", members=[Member(id="m1", name="Anna")])

        async def scenario():
            await gateway.create_profile(profile)
            await gateway.update_profile("fam-1", {"google_sheet_url": "https://example.org/s"})
            return await gateway.get_profile("fam-1")

        stored = asyncio.run(scenario())
        assert stored.members == profile.members
        assert stored.google_sheet_url == "https://example.org/s"
