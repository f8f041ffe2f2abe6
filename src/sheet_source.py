"""Planning sheet reader.

Reads the sheet (Google Sheets, or a local CSV/XLSX export) into a string
DataFrame and turns each row into a ``SourceRecord``. An unreadable or
empty sheet is fatal for the run: there is nothing to reconcile without it.
"""

import logging
from typing import Any, Optional

import pandas as pd
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from src.models import SourceRecord
from src.normalize import clean_cell
from src.utils.io_utils import read_source_file
from src.utils.settings import SyncConfig

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SourceDataError(Exception):
    """The planning sheet could not be read or has no rows."""


def sheets_service(credentials_info: dict[str, Any]) -> Any:
    """Build a read-only Sheets v4 service from service-account JSON."""
    creds = Credentials.from_service_account_info(credentials_info, scopes=SHEETS_SCOPES)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def values_to_frame(values: list[list[Any]]) -> pd.DataFrame:
    """Turn a Sheets ``values`` grid (header row first) into a DataFrame.

    Sheets drops trailing empty cells, so short rows are padded to the header
    width; cells beyond the header are ignored.
    """
    if not values:
        return pd.DataFrame()
    header = [str(h).strip() for h in values[0]]
    width = len(header)
    rows = []
    for raw in values[1:]:
        cells = [str(c).strip() for c in raw[:width]]
        cells.extend([""] * (width - len(cells)))
        rows.append(cells)
    return pd.DataFrame(rows, columns=header, dtype=str)


def fetch_sheet_frame(
    spreadsheet_id: str,
    sheet_name: str,
    credentials_info: dict[str, Any],
    service: Any = None,
) -> pd.DataFrame:
    """Read one tab of a Google Sheet.

    Args:
        spreadsheet_id: Spreadsheet id from the sheet URL
        sheet_name: Tab name, used as the A1 range
        credentials_info: Service-account JSON
        service: Prebuilt Sheets service (built from the credentials if None)

    Returns:
        DataFrame of stripped strings

    Raises:
        SourceDataError: If the API call fails

    """
    try:
        svc = service or sheets_service(credentials_info)
        res = svc.spreadsheets().values().get(spreadsheetId=spreadsheet_id, range=sheet_name).execute()
    except Exception as e:
        raise SourceDataError(f"Failed to read sheet '{sheet_name}' of {spreadsheet_id}: {e}") from e
    return values_to_frame(res.get("values") or [])


def records_from_frame(df: pd.DataFrame, config: SyncConfig) -> list[SourceRecord]:
    """Convert sheet rows into ``SourceRecord`` objects.

    Metric columns are only read for top-level rows. Rows are returned in
    sheet order, including rows without a key (the change-set selector
    ignores those).
    """
    f = config.fields
    missing = [c for c in (f.key, f.kind, f.summary) if c not in df.columns]
    if missing:
        raise SourceDataError(f"Sheet is missing required columns: {', '.join(missing)}")

    records: list[SourceRecord] = []
    for row in df.to_dict(orient="records"):
        kind = clean_cell(row.get(f.kind)) or ""
        metrics: dict[str, str] = {}
        if kind == config.top_level:
            for metric in config.metrics:
                value = clean_cell(row.get(metric.column))
                if value is not None:
                    metrics[metric.name] = value
        records.append(
            SourceRecord(
                key=clean_cell(row.get(f.key)) or "",
                kind=kind,
                summary=clean_cell(row.get(f.summary)) or "",
                parent_key=clean_cell(row.get(f.parent)),
                assignee_email=clean_cell(row.get(f.assignee)),
                due_date=clean_cell(row.get(f.due_date)),
                status=clean_cell(row.get(f.status)),
                metrics=metrics,
            )
        )
    return records


def load_source_records(
    config: SyncConfig,
    *,
    input_path: Optional[str] = None,
    sheet: Optional[str] = None,
    spreadsheet_id: Optional[str] = None,
    credentials_info: Optional[dict[str, Any]] = None,
) -> list[SourceRecord]:
    """Fetch the planning sheet and parse it into records.

    A local export is used when ``input_path`` is given, Google Sheets
    otherwise.

    Raises:
        SourceDataError: If the sheet cannot be read or has no data rows

    """
    if input_path:
        try:
            df = read_source_file(input_path, sheet=sheet)
        except (OSError, ValueError) as e:
            raise SourceDataError(str(e)) from e
    else:
        if not spreadsheet_id or credentials_info is None:
            raise SourceDataError("No spreadsheet id or Google credentials configured")
        df = fetch_sheet_frame(spreadsheet_id, sheet or config.sheet_name, credentials_info)

    if df.empty:
        raise SourceDataError("Planning sheet has no data rows")

    records = records_from_frame(df, config)
    logger.info(f"Found {len(records)} rows")
    return records
