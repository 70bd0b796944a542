"""
Tests for the Google Sheets remote store (with a fake worksheet).
"""

import asyncio
import json
from datetime import datetime

import pytest

from car_fund.models.state import default_document
from car_fund.services.storage import StorageError
from car_fund.services.storage.google_sheets import STATE_COLUMNS, GoogleSheetsRemoteStore


MAX_CELL_CHARS = 50_000


class FakeWorksheet:
    """
    Just enough of gspread.Worksheet for the remote store.

    Enforces the real limits that matter here: a cell holds at most
    50,000 characters and writes can't go past the sheet's columns.
    """

    def __init__(self, rows=None):
        self.rows = [list(STATE_COLUMNS)] + [list(r) for r in (rows or [])]
        self.col_count = len(STATE_COLUMNS)
        self.updates = []

    def col_values(self, col):
        return [row[col - 1] if len(row) >= col else "" for row in self.rows]

    def row_values(self, row):
        values = list(self.rows[row - 1])
        while values and values[-1] == "":
            values.pop()
        return values

    def add_cols(self, cols):
        self.col_count += cols

    def _check(self, values):
        if len(values) > self.col_count:
            raise ValueError(f"Range exceeds grid limits: {len(values)} > {self.col_count}")
        for value in values:
            if len(value) > MAX_CELL_CHARS:
                raise ValueError(f"Your input contains more than the maximum of {MAX_CELL_CHARS} characters in a single cell.")

    def append_row(self, values, value_input_option=None):
        self._check(values)
        self.rows.append(list(values))

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check(values[0])
        self.updates.append(range_name)
        row_number = int(range_name.split(":")[0][1:])
        self.rows[row_number - 1] = list(values[0])


class FakeSheetsClient:
    def __init__(self, sheet):
        self.sheet = sheet
        self.calls = 0

    def get_state_sheet(self):
        self.calls += 1
        return self.sheet


@pytest.fixture
def sheet():
    return FakeWorksheet()


@pytest.fixture
def sheets_store(sheet):
    return GoogleSheetsRemoteStore(FakeSheetsClient(sheet))


class TestGoogleSheetsRemoteStore:
    """Tests for row mapping and upsert semantics."""

    def test_fetch_missing_account(self, sheets_store):
        assert asyncio.run(sheets_store.fetch("acct-1")) is None

    def test_upsert_appends_new_row(self, sheets_store, sheet):
        record = asyncio.run(sheets_store.upsert("acct-1", {"cash": 10}))

        assert len(sheet.rows) == 2
        account_id, state_json, updated_at = sheet.rows[1]
        assert account_id == "acct-1"
        assert json.loads(state_json) == {"cash": 10}
        assert datetime.fromisoformat(updated_at) == record.server_updated_at

    def test_upsert_replaces_existing_row(self, sheets_store, sheet):
        asyncio.run(sheets_store.upsert("acct-1", {"cash": 10}))
        asyncio.run(sheets_store.upsert("acct-2", {"cash": 20}))
        asyncio.run(sheets_store.upsert("acct-1", {"cash": 30}))

        assert len(sheet.rows) == 3
        assert sheet.updates == ["A2:C2"]
        assert json.loads(sheet.rows[1][1]) == {"cash": 30}

    def test_fetch_round_trip(self, sheets_store):
        written = asyncio.run(sheets_store.upsert("acct-1", {"cash": 10, "meta": {"lastModified": 5}}))
        fetched = asyncio.run(sheets_store.fetch("acct-1"))

        assert fetched.account_id == "acct-1"
        assert fetched.state_document == {"cash": 10, "meta": {"lastModified": 5}}
        assert fetched.server_updated_at == written.server_updated_at

    def test_missing_timestamp_defaults_to_epoch(self):
        sheet = FakeWorksheet(rows=[["acct-1", "{}", ""]])
        store = GoogleSheetsRemoteStore(FakeSheetsClient(sheet))
        record = asyncio.run(store.fetch("acct-1"))
        assert record.server_updated_at.year == 1970

    def test_corrupt_cell_is_a_storage_error(self):
        sheet = FakeWorksheet(rows=[["acct-1", "{not json", ""]])
        client = FakeSheetsClient(sheet)
        store = GoogleSheetsRemoteStore(client)

        with pytest.raises(StorageError, match="not valid JSON"):
            asyncio.run(store.fetch("acct-1"))
        # Not retried
        assert client.calls == 1


def long_ledger(count: int = 500) -> dict:
    state = default_document(now=1000).to_dict()
    state["entries"] = [
        {
            "id": f"00000000-0000-4000-8000-{i:012d}",
            "date": "2024-06-15",
            "type": "expense",
            "amount": 12.5,
            "desc": f"Groceries and petrol for week {i}",
        }
        for i in range(count)
    ]
    return state


class TestLongDocuments:
    """Documents too long for a single cell."""

    def test_long_ledger_is_split_across_cells(self, sheets_store, sheet):
        document = long_ledger()
        assert len(json.dumps(document)) > MAX_CELL_CHARS

        asyncio.run(sheets_store.upsert("acct-1", document))

        row = sheet.rows[1]
        assert len(row) > len(STATE_COLUMNS)
        assert all(len(cell) <= MAX_CELL_CHARS for cell in row)
        assert row[0] == "acct-1"
        assert datetime.fromisoformat(row[2])

    def test_long_ledger_round_trip(self, sheets_store):
        document = long_ledger()
        asyncio.run(sheets_store.upsert("acct-1", document))
        assert asyncio.run(sheets_store.fetch("acct-1")).state_document == document

    def test_shrinking_document_clears_old_cells(self, sheets_store, sheet):
        asyncio.run(sheets_store.upsert("acct-1", long_ledger()))
        width = len(sheet.rows[1])

        asyncio.run(sheets_store.upsert("acct-1", {"cash": 30}))

        assert len(sheet.rows[1]) == width
        assert sheet.rows[1][3:] == [""] * (width - 3)
        assert asyncio.run(sheets_store.fetch("acct-1")).state_document == {"cash": 30}

    def test_growing_existing_row(self, sheets_store, sheet):
        asyncio.run(sheets_store.upsert("acct-1", {"cash": 10}))
        document = long_ledger()

        asyncio.run(sheets_store.upsert("acct-1", document))

        assert len(sheet.rows) == 2
        assert asyncio.run(sheets_store.fetch("acct-1")).state_document == document
