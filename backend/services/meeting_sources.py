"""
External meeting source adapters.

SDRs log booked meetings by hand in a spreadsheet (a Google Form response
sheet). This module reads those rows, either from an exported workbook /
CSV on disk or from a remote JSON feed, and turns them into MeetingRecord
objects grouped by normalized person name.

Column headers are typed by people, so every field is probed under a fixed
list of spelling variants. The first variant holding a non-empty value wins.

Row-level problems never fail a load:
    - rows without a name or without a timestamp cell are dropped and
      logged with their row number
    - rows whose timestamp cell cannot be parsed are kept with
      ``timestamp=None``; date filtering excludes them later

Source-level problems (missing file, HTTP error, malformed payload) raise
MeetingSourceError. Callers treat that as a degraded source.
"""

import asyncio
import logging
import numbers
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import httpx
import pandas as pd

from backend.core.config import Settings
from backend.models import MeetingDetail, MeetingSource
from backend.services.name_matching import normalize_name

logger = logging.getLogger(__name__)

_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")


# =============================================================================
# COLUMN VARIANTS
# =============================================================================

NAME_COLUMNS: Tuple[str, ...] = ('name', 'Name', 'NAME', 'User', 'user', 'USER')

TIMESTAMP_COLUMNS: Tuple[str, ...] = (
    'timestamp', 'Timestamp', 'TIMESTAMP',
    'Date', 'date', 'DATE',
    'Created', 'created',
)

SOURCE_COLUMNS: Tuple[str, ...] = (
    'source', 'Source', 'SOURCE',
    'Source of Lead', 'source of lead',
    'Lead Source', 'lead source',
)

LEAD_NAME_COLUMNS: Tuple[str, ...] = (
    'Lead Name (individual you were speaking to)',
    'Lead Name', 'lead name', 'Lead', 'lead',
)

COMPANY_COLUMNS: Tuple[str, ...] = ('Company Name', 'company name', 'Company', 'company')

STAGE_COLUMNS: Tuple[str, ...] = ('Current Stage', 'current stage', 'Stage', 'stage')

BOOKED_DATE_COLUMNS: Tuple[str, ...] = (
    'Meeting Booked (date of the cold call conversion)',
    'Meeting Booked', 'meeting booked',
)

# Excel serial day number of 1970-01-01
EXCEL_UNIX_EPOCH_SERIAL: int = 25569
MS_PER_DAY: int = 86400 * 1000

_UNIX_EPOCH = datetime(1970, 1, 1)


class MeetingSourceError(Exception):
    """The external meeting source could not be read."""
    pass


# =============================================================================
# CELL HELPERS
# =============================================================================


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def find_column(row: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """
    Return the first non-empty value among ``candidates`` in ``row``.

    None, empty strings and NaN (pandas' empty cell) count as missing.

    Returns:
        The raw cell value, or None if no candidate holds a value.
    """
    for column in candidates:
        value = row.get(column)
        if not _is_missing(value):
            return value
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a spreadsheet timestamp cell into a naive datetime.

    Accepts:
        - datetime / pandas Timestamp (timezone-aware values are converted
          to UTC and made naive)
        - date (midnight)
        - int/float Excel serial day numbers, also as numeric strings
          (CSV exports and JSON feeds)
        - strings pandas can parse (ISO, "10/14/2025 14:22:23", ...)

    Returns:
        The parsed datetime, or None when the value cannot be parsed.
    """
    if _is_missing(value):
        return None

    if isinstance(value, pd.Timestamp):
        if value.tzinfo is not None:
            value = value.tz_convert(None)
        return value.to_pydatetime()

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return pd.Timestamp(value).tz_convert(None).to_pydatetime()
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, str) and _SERIAL_RE.match(value.strip()):
        value = float(value.strip())

    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        try:
            millis = (float(value) - EXCEL_UNIX_EPOCH_SERIAL) * MS_PER_DAY
            return _UNIX_EPOCH + timedelta(milliseconds=millis)
        except (OverflowError, ValueError):
            return None

    if isinstance(value, str):
        parsed = pd.to_datetime(value.strip(), errors='coerce')
        if pd.isna(parsed):
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.tz_convert(None)
        return parsed.to_pydatetime()

    return None


def _text(value: Any) -> str:
    return '' if _is_missing(value) else str(value).strip()


# =============================================================================
# RECORDS AND GROUPS
# =============================================================================


@dataclass
class MeetingRecord:
    """One spreadsheet row after column probing."""
    name: str
    timestamp: Optional[datetime]
    source_of_lead: str = ''
    lead_name: str = ''
    company_name: str = ''
    current_stage: str = ''
    meeting_booked_date: str = ''
    row_number: Optional[int] = None

    def to_detail(self) -> MeetingDetail:
        return MeetingDetail(
            timestamp=self.timestamp,
            sourceOfLead=self.source_of_lead,
            leadName=self.lead_name,
            companyName=self.company_name,
            currentStage=self.current_stage,
            meetingBookedDate=self.meeting_booked_date,
            source=MeetingSource.SPREADSHEET,
        )


@dataclass
class MeetingLoad:
    """Result of loading a meeting source."""
    records: List[MeetingRecord] = field(default_factory=list)
    dropped: int = 0


@dataclass
class MeetingGroup:
    """All records of one person, keyed by normalized name."""
    key: str
    display_name: str
    records: List[MeetingRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


def load_meeting_records(rows: Iterable[Mapping[str, Any]], first_row_number: int = 2) -> MeetingLoad:
    """
    Convert raw spreadsheet rows into MeetingRecord objects.

    Args:
        rows: Row mappings (header -> cell value).
        first_row_number: Sheet row number of the first data row, used in
            log messages (2 for a sheet with a single header row).

    Returns:
        MeetingLoad with the accepted records and the number dropped.
    """
    load = MeetingLoad()

    for offset, row in enumerate(rows):
        row_number = first_row_number + offset

        if not isinstance(row, Mapping):
            logger.warning(f"Row {row_number}: dropped, not a mapping ({type(row).__name__})")
            load.dropped += 1
            continue

        name = find_column(row, NAME_COLUMNS)
        if name is None:
            logger.warning(f"Row {row_number}: dropped, missing name")
            load.dropped += 1
            continue

        raw_timestamp = find_column(row, TIMESTAMP_COLUMNS)
        if raw_timestamp is None:
            logger.warning(f"Row {row_number}: dropped, missing timestamp")
            load.dropped += 1
            continue

        timestamp = parse_timestamp(raw_timestamp)
        if timestamp is None:
            logger.warning(f"Row {row_number}: unparseable timestamp {raw_timestamp!r}")

        load.records.append(MeetingRecord(
            name=_text(name),
            timestamp=timestamp,
            source_of_lead=_text(find_column(row, SOURCE_COLUMNS)),
            lead_name=_text(find_column(row, LEAD_NAME_COLUMNS)),
            company_name=_text(find_column(row, COMPANY_COLUMNS)),
            current_stage=_text(find_column(row, STAGE_COLUMNS)),
            meeting_booked_date=_text(find_column(row, BOOKED_DATE_COLUMNS)),
            row_number=row_number,
        ))

    logger.info(f"Loaded {len(load.records)} meeting records ({load.dropped} dropped)")
    return load


def group_meetings_by_name(records: Iterable[MeetingRecord]) -> Dict[str, MeetingGroup]:
    """
    Group records by normalized person name.

    The first spelling seen becomes the group's display name. Records whose
    name normalizes to an empty string cannot be matched and are skipped.

    Returns:
        Ordered mapping of normalized name -> MeetingGroup.
    """
    groups: Dict[str, MeetingGroup] = {}
    for record in records:
        key = normalize_name(record.name)
        if not key:
            logger.warning(f"Row {record.row_number}: name {record.name!r} has no letters; skipped")
            continue
        group = groups.get(key)
        if group is None:
            group = MeetingGroup(key=key, display_name=record.name)
            groups[key] = group
        group.records.append(record)
    return groups


# =============================================================================
# SOURCES
# =============================================================================


class MeetingSourceBase:
    """Common loading logic; subclasses provide ``fetch_rows``."""

    cache_key: str = 'meetings'

    async def fetch_rows(self) -> List[Mapping[str, Any]]:
        raise NotImplementedError

    async def load(self) -> MeetingLoad:
        rows = await self.fetch_rows()
        return load_meeting_records(rows)


class WorkbookMeetingSource(MeetingSourceBase):
    """
    Meeting rows from an exported workbook (.xlsx) or CSV file.

    The first sheet is read unless ``sheet_name`` is given. File IO runs in
    a worker thread.
    """

    def __init__(self, path: str, sheet_name: Optional[str] = None):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self.cache_key = f"meetings:{self.path}"

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            raise MeetingSourceError(f"Meeting workbook not found: {self.path}")
        try:
            if self.path.suffix.lower() == '.csv':
                df = pd.read_csv(self.path, dtype=object)
            else:
                df = pd.read_excel(
                    self.path,
                    sheet_name=self.sheet_name if self.sheet_name else 0,
                    engine='openpyxl',
                )
        except Exception as e:
            raise MeetingSourceError(f"Failed to read meeting workbook {self.path}: {e}") from e

        logger.info(f"Read {len(df)} rows from {self.path.name}")
        return df.to_dict(orient='records')

    async def fetch_rows(self) -> List[Mapping[str, Any]]:
        return await asyncio.to_thread(self._read)


class RemoteMeetingSource(MeetingSourceBase):
    """
    Meeting rows from a JSON feed.

    The feed returns either ``{"data": [...]}`` or a bare list of row
    objects keyed by the sheet's column headers.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self.cache_key = f"meetings:{url}"

    async def fetch_rows(self) -> List[Mapping[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url)
        except httpx.HTTPError as e:
            raise MeetingSourceError(f"Meeting feed request failed: {e}") from e

        if response.status_code != 200:
            raise MeetingSourceError(f"Meeting feed returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise MeetingSourceError(f"Meeting feed returned invalid JSON: {e}") from e

        rows = payload.get('data') if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise MeetingSourceError("Meeting feed payload has no 'data' list")

        logger.info(f"Fetched {len(rows)} rows from meeting feed")
        return rows


def meeting_source_from_settings(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[MeetingSourceBase]:
    """
    Build the configured meeting source.

    The remote feed wins over the workbook when both are configured.
    Returns None when neither is configured.
    """
    if settings.meeting_feed_url:
        return RemoteMeetingSource(
            settings.meeting_feed_url,
            timeout=settings.meeting_source_timeout_seconds,
            transport=transport,
        )
    if settings.meeting_workbook_path:
        return WorkbookMeetingSource(settings.meeting_workbook_path, settings.meeting_sheet_name)
    logger.warning("No meeting source configured; metrics will be dialer-only")
    return None


__all__ = [
    'NAME_COLUMNS',
    'TIMESTAMP_COLUMNS',
    'SOURCE_COLUMNS',
    'LEAD_NAME_COLUMNS',
    'COMPANY_COLUMNS',
    'STAGE_COLUMNS',
    'BOOKED_DATE_COLUMNS',
    'MeetingSourceError',
    'find_column',
    'parse_timestamp',
    'MeetingRecord',
    'MeetingLoad',
    'MeetingGroup',
    'load_meeting_records',
    'group_meetings_by_name',
    'MeetingSourceBase',
    'WorkbookMeetingSource',
    'RemoteMeetingSource',
    'meeting_source_from_settings',
]
