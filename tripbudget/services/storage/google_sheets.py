"""
Google Sheets Snapshot Store

DESIGN DECISION: Google Sheets is the storage the HTTP endpoint itself sits on
(an Apps Script reading/writing a sheet). Talking to the sheet directly is
useful when running server-side with a service account:
1. The user can still open the sheet and see their data
2. No database setup required
3. Built-in backup (Google's infrastructure)

Layout: one worksheet, one row per account key.
    key_hash | updated_at | data_json

TRADEOFFS:
- A cell holds at most 50,000 characters; a snapshot larger than that
  is rejected with RemotePersistFailed instead of being truncated
- No transactions; a save rewrites the account's row in one range update
- The raw key is never stored, only its SHA-256 digest
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from tripbudget.config import get_settings
from tripbudget.models.trip import AccountSnapshot
from tripbudget.services.storage.interface import (
    RemoteFetchFailed,
    RemotePersistFailed,
    SnapshotStoreInterface,
    StorageConnectionError,
)


# Column mappings for the Accounts sheet
ACCOUNT_COLUMNS = [
    "key_hash",
    "updated_at",
    "data_json",
]

MAX_CELL_CHARS = 50_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
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
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_accounts_sheet(self) -> gspread.Worksheet:
        """Get or create the Accounts worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.accounts_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.accounts_sheet_name,
                rows=100,
                cols=len(ACCOUNT_COLUMNS),
            )
            sheet.append_row(ACCOUNT_COLUMNS)
        return sheet


def _key_hash(account_key: str) -> str:
    return hashlib.sha256(account_key.encode("utf-8")).hexdigest()


class GoogleSheetsSnapshotStore(SnapshotStoreInterface):
    """
    Google Sheets implementation of the snapshot store.

    The snapshot is JSON-serialized into a single cell of the account's row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, sheet: gspread.Worksheet, key_hash: str) -> tuple[Optional[int], Optional[list]]:
        """Return (1-based row index, row values) for a key, skipping the header."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == key_hash:
                return idx, row
        return None, None

    async def fetch_snapshot(self, account_key: str) -> Optional[AccountSnapshot]:
        """Fetch the snapshot for an account key."""
        try:
            sheet = self._client.get_accounts_sheet()
            _, row = self._find_row(sheet, _key_hash(account_key))
        except Exception as e:
            raise RemoteFetchFailed(f"Failed to read accounts sheet: {e}")

        if row is None or len(row) < 3 or not row[2]:
            return None

        try:
            return AccountSnapshot.model_validate(json.loads(row[2]))
        except (json.JSONDecodeError, ValidationError) as e:
            raise RemoteFetchFailed(f"Stored snapshot is malformed: {e}")

    async def save_snapshot(self, account_key: str, snapshot: AccountSnapshot) -> bool:
        """Insert or replace the account's row."""
        data_json = json.dumps(snapshot.to_wire(), ensure_ascii=False)
        if len(data_json) > MAX_CELL_CHARS:
            raise RemotePersistFailed(
                f"Snapshot is {len(data_json)} characters, a sheet cell holds at most {MAX_CELL_CHARS}"
            )

        key_hash = _key_hash(account_key)
        new_row = [key_hash, datetime.now(timezone.utc).isoformat(), data_json]

        try:
            sheet = self._client.get_accounts_sheet()
            idx, _ = self._find_row(sheet, key_hash)
            if idx is None:
                sheet.append_row(new_row, value_input_option="RAW")
            else:
                sheet.update(
                    range_name=f"A{idx}:C{idx}",
                    values=[new_row],
                    value_input_option="RAW",
                )
            return True
        except Exception as e:
            raise RemotePersistFailed(f"Failed to save snapshot: {e}")
