"""Google Sheets data access.

Wraps the Sheets v4 API (google-api-python-client) behind a small service:
- get_spreadsheet_info: spreadsheet title and per-sheet grid dimensions
- fetch_range: cell values for one A1 range
- fetch_whole_sheet: every used cell of one sheet, plus grid metadata

The API client is created once, on first use, behind a lock. reset() drops
it so the next call picks up new credentials (after OAuth sign-in/out).
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httplib2
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger

from sheets_bridge.exceptions import NotFoundError, UpstreamError
from sheets_bridge.normalize import Grid, Record, to_records

FORMATTED_VALUE = "FORMATTED_VALUE"
FORMATTED_STRING = "FORMATTED_STRING"

# Columns probed when the bare sheet name returns nothing. Data beyond
# column Z is not visible on this path.
FALLBACK_COLUMNS = "A:Z"
FALLBACK_COLUMN_COUNT = 26

CredentialsProvider = Callable[[], Credentials]
ApiFactory = Callable[[Credentials], Any]
HttpFactory = Callable[[Credentials], Any]


@dataclass(frozen=True)
class SheetInfo:
    """Information about a single sheet within a spreadsheet."""

    name: str
    sheet_id: int
    row_count: int
    column_count: int


@dataclass(frozen=True)
class SpreadsheetInfo:
    """Spreadsheet title and its sheets."""

    title: str
    sheets: tuple[SheetInfo, ...]


@dataclass(frozen=True)
class SheetData:
    """All used cells of one sheet."""

    sheet_name: str
    total_rows: int
    total_columns: int
    grid: Grid
    headers: list[str]
    records: list[Record]


def build_sheets_api(credentials: Credentials) -> Any:
    """Build a Sheets v4 API resource."""
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def _authorized_http(credentials: Credentials) -> AuthorizedHttp:
    # httplib2.Http is not thread-safe, so every request gets its own
    return AuthorizedHttp(credentials, http=httplib2.Http())


def _upstream_message(error: Exception) -> str:
    if isinstance(error, HttpError):
        reason = getattr(error, "reason", None)
        if reason:
            return str(reason)
    return str(error) or type(error).__name__


class SheetsService:
    """Reads spreadsheet metadata and cell values."""

    def __init__(
        self,
        credentials_provider: CredentialsProvider,
        api_factory: ApiFactory = build_sheets_api,
        http_factory: HttpFactory | None = _authorized_http,
    ) -> None:
        self._credentials_provider = credentials_provider
        self._api_factory = api_factory
        self._http_factory = http_factory
        self._lock = threading.Lock()
        self._credentials: Credentials | None = None
        self._api: Any = None

    def reset(self) -> None:
        """Forget the current client so new credentials take effect."""
        with self._lock:
            self._credentials = None
            self._api = None

    def _get_api(self) -> tuple[Any, Credentials]:
        with self._lock:
            if self._api is None:
                credentials = self._credentials_provider()
                self._api = self._api_factory(credentials)
                self._credentials = credentials
                logger.info("Google Sheets client initialized")
            return self._api, self._credentials  # type: ignore[return-value]

    def _execute(self, make_request: Callable[[Any], Any]) -> dict[str, Any]:
        """Build a request against the API resource and run it.

        Raises:
            UpstreamError: The API, the transport or the credentials failed.
        """
        api, credentials = self._get_api()
        http = self._http_factory(credentials) if self._http_factory else None
        try:
            request = make_request(api)
            result: dict[str, Any] = request.execute(http=http)
            return result
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            raise UpstreamError(_upstream_message(e), cause=e) from e

    def get_spreadsheet_info(self, spreadsheet_id: str) -> SpreadsheetInfo:
        """Fetch the spreadsheet title and the grid size of each sheet."""
        response = self._execute(lambda api: api.spreadsheets().get(spreadsheetId=spreadsheet_id))

        raw_sheets = response.get("sheets")
        if not raw_sheets:
            raise NotFoundError("No sheets found in spreadsheet")

        sheets = []
        for sheet in raw_sheets:
            props = sheet.get("properties", {})
            grid_props = props.get("gridProperties", {})
            sheets.append(
                SheetInfo(
                    name=props.get("title") or "Unknown",
                    sheet_id=props.get("sheetId") or 0,
                    row_count=grid_props.get("rowCount") or 0,
                    column_count=grid_props.get("columnCount") or 0,
                )
            )

        return SpreadsheetInfo(
            title=response.get("properties", {}).get("title") or "Unknown Spreadsheet",
            sheets=tuple(sheets),
        )

    def fetch_range(
        self,
        spreadsheet_id: str,
        range_: str,
        value_render_option: str = FORMATTED_VALUE,
        date_time_render_option: str = FORMATTED_STRING,
    ) -> Grid:
        """Fetch the cell values of one range. Empty ranges give an empty grid."""
        response = self._execute(
            lambda api: api.spreadsheets()
            .values()
            .get(
                spreadsheetId=spreadsheet_id,
                range=range_,
                valueRenderOption=value_render_option,
                dateTimeRenderOption=date_time_render_option,
            )
        )
        values: Grid = response.get("values") or []
        return values

    def fetch_whole_sheet(self, spreadsheet_id: str, sheet_name: str = "Sheet1") -> SheetData:
        """Fetch every used cell of a sheet.

        The values API trims trailing empty rows and columns, so the bare sheet
        name usually returns exactly the used region in one call. When it
        returns nothing, the sheet is probed again with columns A:Z. Declared
        grid dimensions come from one metadata call and are only used when
        the grid itself gives no answer.
        """
        grid = self.fetch_range(spreadsheet_id, sheet_name)
        used_fallback = False
        if not grid:
            logger.warning(
                "Sheet returned no rows, retrying with columns A:Z only",
                extra={"spreadsheet_id": spreadsheet_id, "sheet": sheet_name},
            )
            grid = self.fetch_range(spreadsheet_id, f"{sheet_name}!{FALLBACK_COLUMNS}")
            used_fallback = True

        response = self._execute(lambda api: api.spreadsheets().get(spreadsheetId=spreadsheet_id))
        grid_props: dict[str, Any] = {}
        for sheet in response.get("sheets") or []:
            props = sheet.get("properties", {})
            if props.get("title") == sheet_name:
                grid_props = props.get("gridProperties", {})
                break

        if used_fallback:
            derived_columns = FALLBACK_COLUMN_COUNT
        else:
            derived_columns = len(grid[0]) if grid else 0

        return SheetData(
            sheet_name=sheet_name,
            total_rows=grid_props.get("rowCount") or len(grid),
            total_columns=grid_props.get("columnCount") or derived_columns,
            grid=grid,
            headers=list(grid[0]) if grid else [],
            records=to_records(grid),
        )
