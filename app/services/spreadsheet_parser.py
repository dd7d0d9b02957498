"""
Charge sheet parser.

Loads an uploaded workbook or CSV (local path or http/https URL) and turns it
into ordered row records keyed by the sheet's header names.
"""

import asyncio
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pandas as pd

from app.config import settings
from app.core.exceptions import NotFoundError, SpreadsheetParseError, ValidationError
from app.models.enums import SpreadsheetType

logger = logging.getLogger(__name__)

HOUSE_NO_COLUMN = "เลขห้อง"
MEMBER_NAME_COLUMN = "ชื่อลูกบ้าน"
AMOUNT_COLUMN = "ยอดเงิน"
REMARK_COLUMN = "หมายเหตุ"
REQUIRED_COLUMNS = (HOUSE_NO_COLUMN, MEMBER_NAME_COLUMN, AMOUNT_COLUMN)

# "11/01" typed into a spreadsheet comes back as a date such as "11/1/01"
DATE_LIKE_UNIT = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{1,2})$")

_EXCEL_ENGINES = {
    SpreadsheetType.XLSX: "openpyxl",
    SpreadsheetType.XLS: "xlrd",
}


@dataclass
class ParsedRow:
    """One data row; row_number is 1-based over data rows (header excluded)."""
    row_number: int
    values: Dict[str, Any]


@dataclass
class ParsedSheet:
    columns: List[str]
    rows: List[ParsedRow] = field(default_factory=list)


def canonicalize_house_no(value: Any) -> Any:
    """Undo spreadsheet date auto-formatting of unit numbers ("11/1/01" -> "11/01")."""
    if isinstance(value, (datetime, date)):
        return f"{value.month:02d}/{value.day:02d}"
    if isinstance(value, str):
        match = DATE_LIKE_UNIT.match(value.strip())
        if match:
            first, second, _ = match.groups()
            return f"{int(first):02d}/{int(second):02d}"
    return value


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _clean(value: Any) -> Any:
    return None if _is_blank(value) else value


def is_remote(file_path: str) -> bool:
    return file_path.lower().startswith(("http://", "https://"))


async def fetch_file_bytes(file_path: str, *, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """Read the upload into memory, fetching it first when it lives behind a URL."""
    if is_remote(file_path):
        try:
            if client is None:
                async with httpx.AsyncClient(
                    timeout=settings.FILE_FETCH_TIMEOUT_SECONDS, follow_redirects=True
                ) as own_client:
                    resp = await own_client.get(file_path)
            else:
                resp = await client.get(file_path)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NotFoundError(
                "Uploaded file not found at its storage URL",
                code="FILE_NOT_FOUND",
                details={"file_path": file_path, "status_code": exc.response.status_code},
            ) from exc
        except httpx.RequestError as exc:
            raise NotFoundError(
                "Uploaded file could not be fetched from its storage URL",
                code="FILE_NOT_FOUND",
                details={"file_path": file_path, "error": str(exc)},
            ) from exc
        return resp.content

    path = Path(file_path)
    if not path.is_absolute():
        path = Path(settings.UPLOAD_ROOT) / path
    if not path.is_file():
        raise NotFoundError(
            "Uploaded file not found on server",
            code="FILE_NOT_FOUND",
            details={"file_path": file_path},
        )
    return await asyncio.to_thread(path.read_bytes)


def _decode_csv(content: bytes) -> pd.DataFrame:
    try:
        return pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as exc:
        raise ValidationError("The uploaded file has no data", code="EMPTY_UPLOAD") from exc
    except (UnicodeDecodeError, pd.errors.ParserError) as exc:
        raise SpreadsheetParseError(
            "CSV file could not be read as UTF-8 text",
            code="SPREADSHEET_UNREADABLE",
        ) from exc


def _decode_workbook(content: bytes, file_type: SpreadsheetType) -> pd.DataFrame:
    try:
        raw = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=_EXCEL_ENGINES[file_type],
        )
    except Exception as exc:
        logger.warning("Workbook decode failed", extra={"file_type": file_type.value, "error": str(exc)})
        raise SpreadsheetParseError(
            "Spreadsheet file is corrupt or not a real Excel workbook",
            code="SPREADSHEET_UNREADABLE",
        ) from exc

    first_cells = [
        raw.iat[0, col] if raw.shape[0] > 0 and col < raw.shape[1] else None
        for col in range(3)
    ]
    if all(_is_blank(cell) for cell in first_cells):
        raise SpreadsheetParseError(
            "Spreadsheet has no header in A1:C1",
            code="INVALID_SPREADSHEET_SHAPE",
        )

    headers = [
        str(cell).strip() if not _is_blank(cell) else f"__EMPTY_{idx}"
        for idx, cell in enumerate(raw.iloc[0].tolist())
    ]
    frame = raw.iloc[1:].copy()
    frame.columns = headers
    return frame


def decode_sheet(content: bytes, file_ext: str) -> ParsedSheet:
    """Decode raw bytes into a ParsedSheet, blank rows skipped before numbering."""
    file_type = SpreadsheetType(file_ext.lower())
    if file_type is SpreadsheetType.CSV:
        frame = _decode_csv(content)
    else:
        frame = _decode_workbook(content, file_type)

    columns = [str(column) for column in frame.columns]
    sheet = ParsedSheet(columns=columns)
    for record in frame.to_dict(orient="records"):
        values = {str(key): _clean(value) for key, value in record.items()}
        if all(value is None for value in values.values()):
            continue
        if HOUSE_NO_COLUMN in values:
            values[HOUSE_NO_COLUMN] = canonicalize_house_no(values[HOUSE_NO_COLUMN])
        sheet.rows.append(ParsedRow(row_number=len(sheet.rows) + 1, values=values))
    return sheet


def ensure_required_columns(sheet: ParsedSheet) -> None:
    missing = [column for column in REQUIRED_COLUMNS if column not in sheet.columns]
    if missing:
        raise ValidationError(
            f"Sheet is missing required columns: {', '.join(missing)}",
            code="MISSING_COLUMNS",
            details={"missing_columns": missing, "required_columns": list(REQUIRED_COLUMNS)},
        )
    if not sheet.rows:
        raise ValidationError("The uploaded file has no data rows", code="EMPTY_UPLOAD")


async def parse_upload(
    file_path: str,
    file_ext: str,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ParsedSheet:
    """Fetch and decode an upload, then check it carries the charge sheet columns."""
    content = await fetch_file_bytes(file_path, client=client)
    if not content:
        raise ValidationError("The uploaded file is empty", code="EMPTY_UPLOAD")
    sheet = await asyncio.to_thread(decode_sheet, content, file_ext)
    ensure_required_columns(sheet)
    logger.info(
        "Charge sheet parsed",
        extra={"file_ext": file_ext, "rows": len(sheet.rows), "columns": sheet.columns},
    )
    return sheet
