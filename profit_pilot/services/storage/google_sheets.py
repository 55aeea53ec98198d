"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a shared backend because:
1. Non-technical users can open the spreadsheet the ledger lives in
2. No database setup required
3. Backups come with the Google account

TRADEOFFS:
- Not suitable for high-volume data (a ledger is one row)
- Sheets has no multi-range transactions, so each owner's ledger is ONE
  row written by ONE values update. A failed save leaves the previous
  row untouched and a load always reads a single consistent snapshot.
- The ledger is stored as JSON, so the sheet is not meant for editing
  by hand

Row layout in the ledgers worksheet:

    owner_id | updated_at | chunk_count | chunk_1 | chunk_2 | ...

The snapshot JSON is split across chunk cells because a cell holds at
most 50,000 characters. When a ledger shrinks, the cells past the new
last chunk are blanked by the same update that writes the new chunks.
"""

from typing import Optional, Sequence

import gspread
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from profit_pilot.config import GoogleSheetsSettings, get_settings
from profit_pilot.logger import get_logger
from profit_pilot.models.ledger import (
    LedgerSnapshot,
    Partner,
    Sale,
    Settlement,
    utc_now,
)
from profit_pilot.services.storage.interface import (
    LedgerStoreInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

logger = get_logger(__name__)

LEDGER_COLUMNS = ["owner_id", "updated_at", "chunk_count", "chunk_1"]

# Columns before the first chunk
_CHUNK_OFFSET = 3

# Characters per chunk cell, below the 50,000 per-cell limit
CHUNK_SIZE = 40000

_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """
    Opens the configured spreadsheet and its ledgers worksheet.

    The gspread client and spreadsheet handle are created on first use
    and reused afterwards.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets
        self._gc: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def authorize(self) -> gspread.Client:
        """Authorize with the service account file."""
        if self._gc is not None:
            return self._gc

        path = self._settings.credentials_path
        try:
            credentials = Credentials.from_service_account_file(path, scopes=_SCOPES)
            self._gc = gspread.authorize(credentials)
        except FileNotFoundError as e:
            raise StorageConnectionError(f"Google credentials file not found: {path}") from e
        except Exception as e:
            raise StorageConnectionError(f"Could not authorize with Google Sheets: {e}") from e
        return self._gc

    def spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            key = self._settings.spreadsheet_id
            try:
                self._spreadsheet = self.authorize().open_by_key(key)
            except gspread.SpreadsheetNotFound as e:
                raise StorageConnectionError(f"Spreadsheet not found: {key}") from e
        return self._spreadsheet

    def ledgers_sheet(self) -> gspread.Worksheet:
        """The worksheet holding one row per owner, created with a header on first use."""
        title = self._settings.ledgers_sheet_name
        spreadsheet = self.spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("ledgers_sheet_created", title=title)
            sheet = spreadsheet.add_worksheet(title=title, rows=100, cols=len(LEDGER_COLUMNS))
            sheet.append_row(LEDGER_COLUMNS, value_input_option="RAW")
            return sheet


def _find_owner_row(rows: list[list[str]], owner_id: str) -> Optional[int]:
    """1-based sheet row of the owner's ledger, skipping the header."""
    for index, row in enumerate(rows[1:], start=2):
        if row and row[0] == owner_id:
            return index
    return None


def _split_chunks(payload: str) -> list[str]:
    return [payload[i:i + CHUNK_SIZE] for i in range(0, len(payload), CHUNK_SIZE)]


class GoogleSheetsLedgerStore(LedgerStoreInterface):
    """
    Google Sheets implementation of the ledger store.

    Every value is written with RAW input so Sheets never reinterprets
    the JSON as a number or date.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        retry=retry_if_not_exception_type(NotFoundError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def load(self, owner_id: str) -> LedgerSnapshot:
        """Read the owner's row and rebuild the snapshot from its chunks."""
        try:
            rows = self._client.ledgers_sheet().get_all_values()
        except StorageError:
            raise
        except Exception as e:
            logger.error("ledger_load_failed", owner_id=owner_id, error=str(e))
            raise StorageError(f"Failed to load ledger: {e}") from e

        index = _find_owner_row(rows, owner_id)
        if index is None:
            raise NotFoundError(f"No ledger for owner: {owner_id}")
        row = rows[index - 1]

        try:
            count = int(row[2])
            chunks = row[_CHUNK_OFFSET:_CHUNK_OFFSET + count]
            if count < 1 or len(chunks) != count:
                raise ValueError(f"expected {row[2]} chunks, found {len(chunks)}")
            snapshot = LedgerSnapshot.model_validate_json("".join(chunks))
        except (IndexError, ValueError, ValidationError) as e:
            logger.error("ledger_corrupt", owner_id=owner_id, row=index, error=str(e))
            raise StorageError(f"Malformed ledger row for owner {owner_id}: {e}") from e

        logger.debug("ledger_loaded", owner_id=owner_id, row=index, chunks=count)
        return snapshot

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save(
        self,
        owner_id: str,
        sales: Sequence[Sale],
        partners: Sequence[Partner],
        settlements: Sequence[Settlement],
    ) -> bool:
        """Write the whole ledger as the owner's single row."""
        payload = LedgerSnapshot(
            sales=tuple(sales),
            partners=tuple(partners),
            settlements=tuple(settlements),
        ).model_dump_json()
        chunks = _split_chunks(payload)
        row = [owner_id, utc_now().isoformat(), str(len(chunks)), *chunks]

        try:
            sheet = self._client.ledgers_sheet()
            rows = sheet.get_all_values()
            index = _find_owner_row(rows, owner_id)

            if index is not None:
                # Blank the cells a longer previous ledger used
                row += [""] * (len(rows[index - 1]) - len(row))
            if len(row) > sheet.col_count:
                sheet.add_cols(len(row) - sheet.col_count)

            if index is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(values=[row], range_name=f"A{index}", value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            logger.error("ledger_save_failed", owner_id=owner_id, error=str(e))
            raise StorageError(f"Failed to save ledger: {e}") from e

        logger.debug("ledger_saved", owner_id=owner_id, chunks=len(chunks))
        return True
