"""REST API endpoints.

This module contains all HTTP endpoints. Business logic is delegated to:
- SheetsService: spreadsheet metadata and cell values
- GoogleOAuthManager: consent URL, code exchange, token file
- SlackNotifier: Block Kit summaries of fetched sheets

Endpoints:
- GET  /                              - Service banner and feature flags
- GET  /slack/health                  - Slack connectivity check
- GET  /sheets/{id}                   - Sheet names and grid sizes
- GET  /sheets/{id}/all               - Whole sheet + Slack notification
- GET  /sheets/{id}/data              - Range built from query parameters
- GET  /sheets/{id}/{range}           - Explicit A1 range
- GET  /auth/google                   - OAuth consent URL
- GET  /auth/google/callback          - OAuth code exchange
- GET  /auth/google/status            - Whether a token file exists
- POST /auth/google/revoke            - Revoke grant and delete token file

Every failure answers {"success": false, "error": ..., "details": ...}.
"""

from typing import Any, Literal
from urllib.parse import unquote

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import JSONResponse
from loguru import logger

from sheets_bridge.config import Settings
from sheets_bridge.dependencies import (
    get_app_settings,
    get_oauth_manager,
    get_sheets_service,
    get_slack_notifier,
)
from sheets_bridge.exceptions import SheetsBridgeError, ValidationError
from sheets_bridge.normalize import (
    filter_non_empty,
    filter_non_empty_records,
    grid_width,
    to_records,
)
from sheets_bridge.oauth import GoogleOAuthManager
from sheets_bridge.ranges import DEFAULT_SHEET, build_range, column_to_letter, effective_range
from sheets_bridge.sheets import FORMATTED_STRING, FORMATTED_VALUE, SheetData, SheetsService
from sheets_bridge.slack import SlackMetadata, SlackNotifier, SlackTableData

# Keeps the Slack message well under the block limit
SLACK_MAX_ROWS = 25

ValueRenderOption = Literal["FORMATTED_VALUE", "UNFORMATTED_VALUE", "FORMULA"]
DateTimeRenderOption = Literal["FORMATTED_STRING", "SERIAL_NUMBER"]

router = APIRouter()


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    """Build the uniform JSON error envelope."""
    content: dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _failure(error: str, exc: SheetsBridgeError) -> JSONResponse:
    # Bad input is reported as itself, not as a failed fetch
    if isinstance(exc, ValidationError):
        return error_response(exc.status_code, exc.message)

    logger.warning(
        "Request failed",
        extra={"failure": error, "error": exc.message, "error_type": type(exc).__name__},
    )
    return error_response(exc.status_code, error, exc.message)


def _require_spreadsheet_id(spreadsheet_id: str) -> None:
    if not spreadsheet_id.strip():
        raise ValidationError("Spreadsheet ID is required")


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get("/")
async def root(
    settings: Settings = Depends(get_app_settings),
    oauth: GoogleOAuthManager = Depends(get_oauth_manager),
    slack: SlackNotifier = Depends(get_slack_notifier),
) -> dict:
    """Service banner with the enabled features."""
    return {
        "message": "Google Sheets API is running!",
        "endpoints": {
            "GET /": "Health check",
            "GET /slack/health": "Slack connectivity check",
            "GET /sheets/:spreadsheetId": "Get all sheet names",
            "GET /sheets/:spreadsheetId/:range": "Get data from specific range",
            "GET /sheets/:spreadsheetId/data": "Get data with query parameters",
            "GET /sheets/:spreadsheetId/all": (
                "Get ALL data from a sheet (all rows and columns) + Slack notification"
            ),
            "GET /auth/google": "Start Google OAuth flow",
            "GET /auth/google/status": "Google OAuth status",
        },
        "slack": {"enabled": slack.is_enabled()},
        "google": {
            "serviceAccount": settings.has_service_account,
            "oauthConfigured": oauth.is_configured,
            "oauthAuthorized": oauth.is_authorized(),
        },
    }


@router.get("/slack/health")
def slack_health(slack: SlackNotifier = Depends(get_slack_notifier)) -> Any:
    """Check that the Slack bot token works."""
    if not slack.is_enabled():
        return {
            "success": False,
            "message": "Slack notifications are disabled or not configured",
            "enabled": False,
        }

    if slack.test_connection():
        return {
            "success": True,
            "message": "Slack connection is working properly",
            "enabled": True,
            "connected": True,
        }

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Failed to connect to Slack",
            "enabled": True,
            "connected": False,
        },
    )


# =============================================================================
# Sheets Endpoints
# =============================================================================


@router.get("/sheets/{spreadsheet_id}")
def get_sheet_names(
    spreadsheet_id: str,
    sheets: SheetsService = Depends(get_sheets_service),
) -> Any:
    """List the sheets of a spreadsheet with their grid sizes."""
    try:
        _require_spreadsheet_id(spreadsheet_id)
        info = sheets.get_spreadsheet_info(spreadsheet_id)
    except SheetsBridgeError as e:
        return _failure("Failed to fetch sheet names", e)

    return {
        "success": True,
        "spreadsheetTitle": info.title,
        "sheets": [
            {
                "name": sheet.name,
                "id": sheet.sheet_id,
                "rowCount": sheet.row_count,
                "columnCount": sheet.column_count,
            }
            for sheet in info.sheets
        ],
    }


@router.get("/sheets/{spreadsheet_id}/all")
def get_all_sheet_data(
    spreadsheet_id: str,
    background_tasks: BackgroundTasks,
    sheet: str = Query(DEFAULT_SHEET),
    include_empty: bool = Query(False, alias="includeEmpty"),
    sheets: SheetsService = Depends(get_sheets_service),
    slack: SlackNotifier = Depends(get_slack_notifier),
) -> Any:
    """Fetch every used cell of a sheet and post a summary to Slack.

    The Slack post runs after the response is sent; its outcome never
    changes the response.
    """
    try:
        _require_spreadsheet_id(spreadsheet_id)
        result = sheets.fetch_whole_sheet(spreadsheet_id, sheet)
    except SheetsBridgeError as e:
        return _failure("Failed to fetch all sheet data", e)

    raw = result.grid
    objects = result.records
    if not include_empty and raw:
        raw = filter_non_empty(raw)
        objects = filter_non_empty_records(objects)

    data_rows = len(raw)
    data_columns = grid_width(raw)

    if slack.is_enabled():
        background_tasks.add_task(_notify_slack, slack, spreadsheet_id, result, raw)

    return {
        "success": True,
        "spreadsheetId": spreadsheet_id,
        "sheetName": result.sheet_name,
        "totalRows": result.total_rows,
        "totalColumns": result.total_columns,
        "actualDataRows": data_rows,
        "actualDataColumns": data_columns,
        "data": {
            "headers": result.headers,
            "raw": raw,
            "objects": objects,
            "metadata": {
                "hasHeaders": data_rows > 0,
                "gridColumnCount": result.total_columns,
                "gridRowCount": result.total_rows,
                "dataRows": data_rows,
                "dataColumns": data_columns,
                "nonEmptyRows": max(0, data_rows - 1),
                "lastDataColumn": column_to_letter(data_columns) if data_columns > 0 else "A",
                "effectiveRange": effective_range(result.sheet_name, data_rows, data_columns),
            },
        },
    }


def _notify_slack(
    slack: SlackNotifier, spreadsheet_id: str, result: SheetData, raw: list[list[str]]
) -> None:
    """Background task: post the fetched sheet to Slack."""
    table = SlackTableData(
        headers=result.headers,
        rows=raw[1:],
        metadata=SlackMetadata(
            spreadsheet_id=spreadsheet_id,
            sheet_name=result.sheet_name,
            total_rows=result.total_rows,
            actual_data_rows=max(0, len(raw) - 1),
        ),
    )
    outcome = slack.send_table_notification(table, include_metadata=True, max_rows=SLACK_MAX_ROWS)
    if not outcome:
        logger.warning(
            "Slack notification not delivered",
            extra={"spreadsheet_id": spreadsheet_id, "reason": outcome.reason},
        )


@router.get("/sheets/{spreadsheet_id}/data")
def get_sheet_data(
    spreadsheet_id: str,
    sheet: str = Query(DEFAULT_SHEET),
    start_row: str | None = Query("1", alias="startRow"),
    end_row: str | None = Query(None, alias="endRow"),
    start_col: str | None = Query("A", alias="startCol"),
    end_col: str | None = Query(None, alias="endCol"),
    format_: Literal["raw", "objects", "both"] = Query("objects", alias="format"),
    sheets: SheetsService = Depends(get_sheets_service),
) -> Any:
    """Fetch a range assembled from sheet, row and column parameters."""
    range_ = build_range(sheet, start_row, end_row, start_col, end_col)
    try:
        _require_spreadsheet_id(spreadsheet_id)
        rows = sheets.fetch_range(spreadsheet_id, range_)
    except SheetsBridgeError as e:
        return _failure("Failed to fetch data", e)

    data: dict[str, Any] = {}
    if format_ in ("raw", "both"):
        data["raw"] = rows
    if format_ in ("objects", "both") and rows:
        data["objects"] = to_records(rows)
        data["headers"] = rows[0]

    return {"success": True, "range": range_, "rowCount": len(rows), "data": data}


# Registered after /all and /data so those paths are not read as ranges
@router.get("/sheets/{spreadsheet_id}/{range_path:path}")
def get_sheet_range(
    spreadsheet_id: str,
    range_path: str,
    value_render_option: ValueRenderOption = Query(FORMATTED_VALUE, alias="valueRenderOption"),
    date_time_render_option: DateTimeRenderOption = Query(
        FORMATTED_STRING, alias="dateTimeRenderOption"
    ),
    sheets: SheetsService = Depends(get_sheets_service),
) -> Any:
    """Fetch an explicit, URL-encoded A1 range such as ``Sheet1%21A1%3AC10``."""
    if not spreadsheet_id.strip() or not range_path:
        return error_response(400, "Spreadsheet ID and range are required")

    range_ = unquote(range_path)
    try:
        rows = sheets.fetch_range(
            spreadsheet_id,
            range_,
            value_render_option=value_render_option,
            date_time_render_option=date_time_render_option,
        )
    except SheetsBridgeError as e:
        return _failure("Failed to fetch data", e)

    data: Any = rows
    if rows:
        data = {"headers": rows[0], "rows": rows[1:], "objects": to_records(rows)}

    return {"success": True, "range": range_, "rowCount": len(rows), "data": data}


# =============================================================================
# Google OAuth Endpoints
# =============================================================================


@router.get("/auth/google")
def begin_oauth(oauth: GoogleOAuthManager = Depends(get_oauth_manager)) -> Any:
    """Return the Google consent URL."""
    try:
        url = oauth.generate_auth_url()
    except SheetsBridgeError as e:
        return _failure(e.message or "Failed to generate auth URL", e)
    return {"success": True, "url": url}


@router.get("/auth/google/callback")
def oauth_callback(
    code: str | None = None,
    oauth: GoogleOAuthManager = Depends(get_oauth_manager),
    sheets: SheetsService = Depends(get_sheets_service),
) -> Any:
    """Exchange the authorization code and store the tokens."""
    if not code:
        return error_response(400, "Missing 'code' query param")

    try:
        oauth.handle_callback(code)
    except SheetsBridgeError as e:
        return _failure(e.message or "OAuth callback failed", e)

    sheets.reset()
    return {"success": True, "message": "OAuth successful. Tokens stored."}


@router.get("/auth/google/status")
def oauth_status(oauth: GoogleOAuthManager = Depends(get_oauth_manager)) -> dict:
    return {"success": True, "authorized": oauth.is_authorized()}


@router.post("/auth/google/revoke")
def revoke_oauth(
    oauth: GoogleOAuthManager = Depends(get_oauth_manager),
    sheets: SheetsService = Depends(get_sheets_service),
) -> dict:
    """Revoke the stored grant and delete the token file (best-effort)."""
    outcome = oauth.revoke()
    sheets.reset()
    if not outcome:
        logger.warning("OAuth revoke incomplete", extra={"reason": outcome.reason})
    return {"success": True}
