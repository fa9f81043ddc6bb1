"""
Google Sheets Store Gateway

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Families can look at their data directly in a spreadsheet
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each collection is one worksheet named after the collection, with a header
row and one entity per row. The family_id column partitions tenants; the
families and members worksheets hold the profiles.

TRADEOFFS:
- Every read is a full-sheet read filtered in Python (fine at household scale)
- No transactions; the last writer wins
- Reads and connection setup are retried; writes are not, since a blind
  retry of append_row can duplicate a row
"""

from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from household_ledger.config import get_settings
from household_ledger.models.household import FamilyProfile, LedgerModel
from household_ledger.services.storage.interface import (
    Collection,
    DuplicateError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    StoreGatewayInterface,
)
from household_ledger.services.storage.mapping import (
    COLLECTION_COLUMNS,
    FAMILY_COLUMNS,
    MEMBER_COLUMNS,
    TENANT_COLUMN,
    entity_to_row,
    member_to_row,
    patch_to_cells,
    profile_patch_to_cells,
    profile_to_row,
    row_to_entity,
    row_to_member,
    row_to_profile,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and retried reads.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=1000,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_rows(self, title: str, columns: list[str]) -> list[dict[str, str]]:
        """
        All data rows of a worksheet keyed by header.

        get_all_values keeps every cell as text, so "007" stays a string.
        """
        values = self.get_worksheet(title, columns).get_all_values()
        if not values:
            return []
        header = values[0]
        return [dict(zip(header, row)) for row in values[1:] if row and row[0]]

    def find_row_index(self, title: str, columns: list[str], entity_id: str) -> Optional[int]:
        """1-based sheet row index of an id, or None."""
        for idx, row in enumerate(self.read_rows(title, columns), start=2):
            if row.get("id") == entity_id:
                return idx
        return None


class GoogleSheetsStoreGateway(StoreGatewayInterface):
    """
    Google Sheets implementation of the remote store.

    Entity rows are written in COLLECTION_COLUMNS order; patches update
    only the touched cells.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = get_settings().google_sheets
        self._families_sheet = settings.families_sheet_name
        self._members_sheet = settings.members_sheet_name

    def _update_cells(
        self,
        title: str,
        columns: list[str],
        row_index: int,
        cells: dict[str, str],
    ) -> None:
        sheet = self._client.get_worksheet(title, columns)
        for key, value in cells.items():
            sheet.update_cell(row_index, columns.index(key) + 1, value)

    async def fetch_all(self, collection: Collection, tenant_id: str) -> list[LedgerModel]:
        try:
            rows = self._client.read_rows(collection.value, COLLECTION_COLUMNS[collection])
        except Exception as e:
            raise StorageError(f"Failed to read {collection.value}: {e}")

        entities = []
        for row in rows:
            if row.get(TENANT_COLUMN) != tenant_id:
                continue
            try:
                entities.append(row_to_entity(collection, row))
            except Exception:
                continue  # Skip malformed rows
        return entities

    async def insert(
        self,
        collection: Collection,
        tenant_id: str,
        entity: LedgerModel,
    ) -> bool:
        columns = COLLECTION_COLUMNS[collection]
        try:
            if self._client.find_row_index(collection.value, columns, entity.id):
                raise DuplicateError(f"{collection.value} already has id {entity.id}")
            row = entity_to_row(collection, tenant_id, entity)
            sheet = self._client.get_worksheet(collection.value, columns)
            sheet.append_row([row[c] for c in columns], value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {collection.value}: {e}")

    async def update(
        self,
        collection: Collection,
        entity_id: str,
        patch: dict[str, Any],
    ) -> bool:
        columns = COLLECTION_COLUMNS[collection]
        cells = patch_to_cells(collection, patch)
        try:
            idx = self._client.find_row_index(collection.value, columns, entity_id)
            if idx is None:
                raise NotFoundError(f"{collection.value} has no id {entity_id}")
            self._update_cells(collection.value, columns, idx, cells)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {collection.value}: {e}")

    async def delete(self, collection: Collection, entity_id: str) -> bool:
        columns = COLLECTION_COLUMNS[collection]
        try:
            idx = self._client.find_row_index(collection.value, columns, entity_id)
            if idx is None:
                return False
            self._client.get_worksheet(collection.value, columns).delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete from {collection.value}: {e}")

    async def get_profile(self, tenant_id: str) -> Optional[FamilyProfile]:
        try:
            families = self._client.read_rows(self._families_sheet, FAMILY_COLUMNS)
            family = next((row for row in families if row.get("id") == tenant_id), None)
            if family is None:
                return None
            members = [
                row_to_member(row)
                for row in self._client.read_rows(self._members_sheet, MEMBER_COLUMNS)
                if row.get(TENANT_COLUMN) == tenant_id
            ]
            return row_to_profile(family, members)
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    async def create_profile(self, profile: FamilyProfile) -> bool:
        try:
            if self._client.find_row_index(self._families_sheet, FAMILY_COLUMNS, profile.id):
                raise DuplicateError(f"Family already exists: {profile.id}")
            family = profile_to_row(profile)
            self._client.get_worksheet(self._families_sheet, FAMILY_COLUMNS).append_row(
                [family[c] for c in FAMILY_COLUMNS], value_input_option="RAW"
            )
            if profile.members:
                sheet = self._client.get_worksheet(self._members_sheet, MEMBER_COLUMNS)
                sheet.append_rows(
                    [
                        [row[c] for c in MEMBER_COLUMNS]
                        for row in (member_to_row(profile.id, m) for m in profile.members)
                    ],
                    value_input_option="RAW",
                )
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to create profile: {e}")

    async def update_profile(self, tenant_id: str, patch: dict[str, Any]) -> bool:
        cells = profile_patch_to_cells(patch)
        try:
            idx = self._client.find_row_index(self._families_sheet, FAMILY_COLUMNS, tenant_id)
            if idx is None:
                raise NotFoundError(f"Family not found: {tenant_id}")
            self._update_cells(self._families_sheet, FAMILY_COLUMNS, idx, cells)
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update profile: {e}")
