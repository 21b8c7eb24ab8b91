"""
Call metadata spreadsheet parsing.

Reads the first sheet of an .xlsx workbook (or a CSV file) with a header row
and turns each data row into a MetadataRow. Header matching ignores case
and separators, so "filename", "FileName", "file_name" and "File Name" all
land on the same field. Columns that match no known field are kept as
string extras.
"""

from __future__ import annotations

import csv
import io
import math
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import BaseModel, Field, field_validator

from callstore.logging_config import get_logger
from callstore.storage.protocol import ValidationError

logger = get_logger(__name__)

_SEPARATORS_RE = re.compile(r"[\s_\-.]+")

# Logical field -> normalised header spellings that map onto it.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "filename": (
        "filename",
        "file",
        "fname",
        "audiofile",
        "recording",
        "recordname",
    ),
    "original_filename": ("originalfilename", "originalfile"),
    "language": ("language", "lang", "calllanguage", "audiolanguage"),
    "version": ("version", "ver"),
    "call_date": ("calldate", "date"),
    "call_id": ("callid",),
    "call_type": ("calltype", "type"),
    "agent_id": ("agentid",),
    "customer_satisfaction": ("csat", "satisfaction", "customersatisfaction"),
    "handle_time": ("handletime", "aht"),
    "audit_role": ("auditrole",),
    "olms_id": ("olmsid",),
    "agent_name": ("name", "agentname"),
    "pbx_id": ("pbxid",),
    "partner_name": ("partnername", "partner"),
    "customer_mobile": ("customermobile", "customermobileno", "mobile"),
    "call_duration": ("callduration",),
    "sub_type": ("subtype",),
    "sub_sub_type": ("subsubtype",),
    "voc": ("voc", "voiceofcustomer"),
    "language_of_call": ("languageofcall",),
    "user_role": ("userrole",),
    "advisor_category": ("advisorcategory",),
    "business_segment": ("businesssegment",),
    "lob": ("lob", "lineofbusiness"),
    "form_name": ("formname",),
    "campaign": ("campaign", "campaignname"),
}

HEADER_TO_FIELD: dict[str, str] = {
    alias: field_name for field_name, aliases in FIELD_ALIASES.items() for alias in aliases
}

CALL_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y%m%d")


def normalize_header(header: Any) -> str:
    """Lowercase a header and strip spaces, underscores, dashes and dots."""
    return _SEPARATORS_RE.sub("", str(header or "")).lower()


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_number(value: Any) -> float:
    """Permissive numeric parse: anything unparseable is 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        else:
            number = float(str(value).strip())
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_call_date(value: Any) -> str:
    """ISO date for a date-ish value; unparseable text passes through."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = _cell_text(value)
    if not text:
        return datetime.now(UTC).date().isoformat()
    for fmt in CALL_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        logger.debug("Unrecognised call date kept as text", call_date=text)
        return text


class MetadataRow(BaseModel):
    """One spreadsheet row of call metadata.

    Core fields are validated; any other column is kept in `extra`.
    """

    filename: str = ""
    original_filename: str = ""
    language: str = "english"
    version: str = "1.0"
    call_date: str = Field(default_factory=lambda: datetime.now(UTC).date().isoformat())
    call_id: str = "unknown"
    call_type: str = "unknown"
    agent_id: str = ""
    customer_satisfaction: float = 0.0
    handle_time: int = 0
    audit_role: str = ""
    olms_id: str = ""
    agent_name: str = ""
    pbx_id: str = ""
    partner_name: str = ""
    customer_mobile: str = ""
    call_duration: str = ""
    sub_type: str = ""
    sub_sub_type: str = ""
    voc: str = ""
    language_of_call: str = ""
    user_role: str = ""
    advisor_category: str = ""
    business_segment: str = ""
    lob: str = ""
    form_name: str = ""
    campaign: str = ""
    extra: dict[str, str] = Field(default_factory=dict)

    @field_validator("customer_satisfaction", mode="before")
    @classmethod
    def _permissive_float(cls, value: Any) -> float:
        return parse_number(value)

    @field_validator("handle_time", mode="before")
    @classmethod
    def _permissive_int(cls, value: Any) -> int:
        return int(parse_number(value))

    @field_validator("language", mode="before")
    @classmethod
    def _lower_language(cls, value: Any) -> str:
        return _cell_text(value).lower() or "english"

    @field_validator("call_date", mode="before")
    @classmethod
    def _iso_call_date(cls, value: Any) -> str:
        return normalize_call_date(value)

    @field_validator(
        "filename",
        "original_filename",
        "version",
        "call_id",
        "call_type",
        "agent_id",
        "audit_role",
        "olms_id",
        "agent_name",
        "pbx_id",
        "partner_name",
        "customer_mobile",
        "call_duration",
        "sub_type",
        "sub_sub_type",
        "voc",
        "language_of_call",
        "user_role",
        "advisor_category",
        "business_segment",
        "lob",
        "form_name",
        "campaign",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return _cell_text(value)

    @classmethod
    def from_record(cls, record: Mapping[Any, Any]) -> MetadataRow:
        """Build a row from a header -> cell mapping."""
        values: dict[str, Any] = {}
        extra: dict[str, str] = {}
        for header, cell in record.items():
            if header is None or str(header).strip() == "":
                continue
            field_name = HEADER_TO_FIELD.get(normalize_header(header))
            if field_name is None:
                extra[str(header).strip()] = _cell_text(cell)
                continue
            if field_name in values and _cell_text(values[field_name]):
                continue
            if cell is None or (isinstance(cell, str) and not cell.strip()):
                continue
            values[field_name] = cell

        if not values.get("original_filename") and values.get("filename"):
            values["original_filename"] = values["filename"]
        if not values.get("language_of_call") and values.get("language"):
            values["language_of_call"] = values["language"]
        return cls(**values, extra=extra)


def parse_rows(records: Iterable[Mapping[Any, Any]]) -> list[MetadataRow]:
    """Convert header -> cell mappings into MetadataRows. Blank rows are skipped."""
    rows: list[MetadataRow] = []
    for record in records:
        if not any(_cell_text(cell) for cell in record.values()):
            continue
        rows.append(MetadataRow.from_record(record))
    return rows


def _unique_headers(headers: list[str]) -> list[str]:
    """Suffix repeated headers with _1, _2, ... so every column keeps its value."""
    seen: dict[str, int] = {}
    unique: list[str] = []
    for header in headers:
        if not header:
            unique.append(header)
            continue
        count = seen.get(header, 0)
        seen[header] = count + 1
        unique.append(header if count == 0 else f"{header}_{count}")
    return unique


def _records_from_table(table: list[list[Any]]) -> list[dict[str, Any]]:
    if not table:
        raise ValidationError("Spreadsheet is empty; a header row is required")

    headers = _unique_headers([_cell_text(cell) for cell in table[0]])
    if not any(headers):
        raise ValidationError("Spreadsheet header row is empty")
    if "filename" not in {HEADER_TO_FIELD.get(normalize_header(h)) for h in headers}:
        raise ValidationError(
            "Could not find a filename column. Available columns are: "
            + ", ".join(h for h in headers if h)
        )

    records: list[dict[str, Any]] = []
    for raw in table[1:]:
        record = {
            header: (raw[index] if index < len(raw) else None)
            for index, header in enumerate(headers)
            if header
        }
        records.append(record)
    return records


def _read_xlsx(data: bytes) -> list[list[Any]]:
    from openpyxl import load_workbook

    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise ValidationError(f"Workbook could not be read: {e}") from e

    try:
        if not workbook.worksheets:
            raise ValidationError("Workbook contains no worksheets")
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv(data: bytes) -> list[list[Any]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        text = data.decode("latin-1")
    return [row for row in csv.reader(io.StringIO(text))]


def read_spreadsheet(data: bytes, filename: str | None = None) -> list[MetadataRow]:
    """Parse a spreadsheet's first sheet into MetadataRows.

    The format is taken from the filename extension when given, otherwise
    sniffed: .xlsx files are zip archives.

    Raises:
        ValidationError: Unreadable workbook, missing header row, or no
            filename column.
    """
    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix in (".xlsx", ".xlsm") or (not suffix and data[:2] == b"PK"):
        table = _read_xlsx(data)
    elif suffix in ("", ".csv", ".txt"):
        table = _read_csv(data)
    else:
        raise ValidationError(
            f"Unsupported spreadsheet format: {suffix}. "
            "Upload an .xlsx workbook or a .csv file; legacy .xls workbooks are not read"
        )

    rows = parse_rows(_records_from_table(table))
    logger.info("Spreadsheet parsed", filename=filename, rows=len(rows))
    return rows


async def load_spreadsheet_file(path: str | Path) -> list[MetadataRow]:
    """Read and parse a spreadsheet from the local filesystem."""
    async with aiofiles.open(path, "rb") as f:
        data = await f.read()
    return read_spreadsheet(data, filename=str(path))
