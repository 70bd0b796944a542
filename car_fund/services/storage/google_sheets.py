"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets is used as the remote copy because:
1. The owner can look at (and back up) their data directly in Sheets
2. No database setup required
3. One row per account is all the sync protocol needs

TRADEOFFS:
- No transactions (an upsert is "find row, then write row")
- Whole-document rows; the state document is stored as JSON text,
  split across cells because Sheets caps a cell at 50,000 characters
- Not meant for concurrent writers (neither is the sync protocol)

gspread is synchronous, so calls run in a worker thread to keep the
caller's event loop free.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional

import gspread
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from car_fund.config import GoogleSheetsSettings
from car_fund.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    RemoteRecord,
    RemoteStateStore,
    StorageError,
)


# Column mappings for the state sheet
STATE_COLUMNS = [
    "account_id",
    "state_json",
    "updated_at",
]

# Sheets rejects cells over 50,000 characters. JSON that doesn't fit in
# state_json continues in the columns after updated_at.
CELL_CHUNK_CHARS = 45_000


def split_cells(text: str, size: int = CELL_CHUNK_CHARS) -> list[str]:
    """Cut text into cell-sized pieces (always at least one)."""
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(
        self,
        settings: GoogleSheetsSettings,
        request_timeout: Optional[float] = None,
    ):
        self._settings = settings
        self._request_timeout = request_timeout
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

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
                client = gspread.authorize(credentials)
                if self._request_timeout:
                    client.set_timeout(self._request_timeout)
                self._client = client
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise NotFoundError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_state_sheet(self) -> gspread.Worksheet:
        """Get or create the state worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.state_sheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.state_sheet_name,
                rows=100,
                cols=len(STATE_COLUMNS),
            )
            sheet.append_row(STATE_COLUMNS)
        return sheet


class GoogleSheetsRemoteStore(RemoteStateStore):
    """
    Google Sheets implementation of the remote state store.

    One row per account: [account_id, state_json, updated_at, ...more
    state_json]. Long documents continue after updated_at.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    @staticmethod
    def _row_to_record(row: list) -> RemoteRecord:
        """Convert a spreadsheet row to a RemoteRecord."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        raw_updated = safe_get(2)
        updated_at = (
            datetime.fromisoformat(raw_updated)
            if raw_updated
            else datetime.fromtimestamp(0, tz=timezone.utc)
        )
        return RemoteRecord(
            account_id=safe_get(0),
            state_document=json.loads(safe_get(1, "{}") + "".join(row[3:])),
            server_updated_at=updated_at,
        )

    def _find_row(self, sheet: gspread.Worksheet, account_id: str) -> Optional[int]:
        """1-based row number for the account, skipping the header."""
        ids = sheet.col_values(1)
        for idx, value in enumerate(ids[1:], start=2):
            if value == account_id:
                return idx
        return None

    @staticmethod
    def _ensure_columns(sheet: gspread.Worksheet, width: int) -> None:
        if sheet.col_count < width:
            sheet.add_cols(width - sheet.col_count)

    @retry(
        retry=retry_if_exception_type(StorageError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _fetch_sync(self, account_id: str) -> Optional[RemoteRecord]:
        try:
            sheet = self._client.get_state_sheet()
            row_number = self._find_row(sheet, account_id)
            if row_number is None:
                return None
            return self._row_to_record(sheet.row_values(row_number))
        except StorageError:
            raise
        except json.JSONDecodeError as e:
            # Retrying won't fix a corrupt cell
            raise ValueError(f"Remote state for {account_id} is not valid JSON: {e}")
        except Exception as e:
            raise StorageError(f"Failed to fetch state: {e}")

    @retry(
        retry=retry_if_exception_type(StorageError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upsert_sync(
        self,
        account_id: str,
        state_document: dict[str, Any],
    ) -> RemoteRecord:
        record = RemoteRecord(
            account_id=account_id,
            state_document=state_document,
            server_updated_at=datetime.now(timezone.utc),
        )
        first, *rest = split_cells(json.dumps(record.state_document))
        row = [
            record.account_id,
            first,
            record.server_updated_at.isoformat(),
            *rest,
        ]
        try:
            sheet = self._client.get_state_sheet()
            row_number = self._find_row(sheet, account_id)
            if row_number is None:
                self._ensure_columns(sheet, len(row))
                sheet.append_row(row, value_input_option="RAW")
            else:
                # Blank out continuation cells a longer document left behind
                width = max(len(row), len(sheet.row_values(row_number)))
                row += [""] * (width - len(row))
                self._ensure_columns(sheet, width)
                sheet.update(
                    range_name=f"A{row_number}:{rowcol_to_a1(row_number, width)}",
                    values=[row],
                    value_input_option="RAW",
                )
            return record
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save state: {e}")

    async def fetch(self, account_id: str) -> Optional[RemoteRecord]:
        """Fetch the state row for an account."""
        try:
            return await asyncio.to_thread(self._fetch_sync, account_id)
        except ValueError as e:
            raise StorageError(str(e))

    async def upsert(
        self,
        account_id: str,
        state_document: dict[str, Any],
    ) -> RemoteRecord:
        """Insert or replace the state row for an account."""
        return await asyncio.to_thread(self._upsert_sync, account_id, state_document)
