"""
Dialer (vendor metrics) API client and metrics adapter.

This module talks to the dialer's HTTP API and turns its responses into
per-user counts for the five funnel stages (Dial, Connect, Pitch,
Conversation, Meeting).

Wire format:
    Every request is a GET to https://<hostname>/<endpoint>. Parameters are
    not sent as a query string: each parameter is JSON-stringified and sent
    as an HTTP header of the same name, with non-ASCII characters escaped as
    \\uXXXX. Timestamps are microseconds since the Unix epoch.

Endpoints:
    - get-visible-accounts: {"users": [...], "team": {...}}
    - metric-details-v6: [[user_id, value], ...] grouped by session resource_id

Stage definitions:
    Each funnel stage is a CNF filter (list of OR-groups that are ANDed).
    Stages are independent by default: Meeting counts BOOKED sessions only.
    With ``cumulative=True`` every stage is also ANDed with the filters of
    all earlier stages.

Failure semantics:
    The dialer is a required source. Any transport error, non-200 status or
    malformed payload raises VendorAPIError and aborts the query.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from backend.core.config import Settings
from backend.models import (
    BackendTable,
    DateRange,
    FilterOperator,
    MetricLabel,
    SessionStage,
    UsersResponse,
    VendorUser,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

ENDPOINT_VISIBLE_ACCOUNTS: str = 'get-visible-accounts'
ENDPOINT_METRIC_DETAILS: str = 'metric-details-v6'

# Dialer timestamps are microseconds; Python gives seconds
MICROS_PER_SECOND: int = 1_000_000

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Id reported by the dialer for sessions without a resource
UNKNOWN_USER_ID: str = 'Unknown'


# =============================================================================
# EXCEPTIONS
# =============================================================================


class VendorAPIError(Exception):
    """The dialer could not be reached or returned an unusable payload."""
    pass


class VendorConfigurationError(VendorAPIError):
    """The dialer client is missing required configuration (API key)."""
    pass


# =============================================================================
# STAGE DEFINITIONS
# =============================================================================


def _clause(column_name: str, table: BackendTable, operator: FilterOperator, value: Any) -> Dict[str, Any]:
    return {
        'column_name': column_name,
        'table': table.value,
        'operator': operator.value,
        'value_safe': value,
    }


LIVE_DURATION_GT_ZERO = _clause('live_duration', BackendTable.SESSION_METRICS, FilterOperator.GT, 0)


@dataclass(frozen=True)
class StageDefinition:
    """A funnel stage: a label plus its CNF filter."""
    label: MetricLabel
    filter: Tuple[Tuple[Dict[str, Any], ...], ...] = ()


@dataclass(frozen=True)
class StageConfig:
    """Ordered funnel stages and whether filters accumulate down the funnel."""
    options: Tuple[StageDefinition, ...]
    cumulative: bool = False

    @property
    def labels(self) -> List[MetricLabel]:
        return [stage.label for stage in self.options]


DEFAULT_STAGES: Tuple[StageDefinition, ...] = (
    StageDefinition(label=MetricLabel.DIAL),
    StageDefinition(
        label=MetricLabel.CONNECT,
        filter=((LIVE_DURATION_GT_ZERO,),),
    ),
    StageDefinition(
        label=MetricLabel.PITCH,
        filter=((
            _clause(
                'stage', BackendTable.SESSION_METRICS, FilterOperator.IN,
                [SessionStage.PITCHED.value, SessionStage.CONVERSATION.value, SessionStage.BOOKED.value],
            ),
            _clause('live_duration', BackendTable.SESSION_METRICS, FilterOperator.GT, 60),
        ),),
    ),
    StageDefinition(
        label=MetricLabel.CONVERSATION,
        filter=((
            _clause(
                'stage', BackendTable.SESSION_METRICS, FilterOperator.IN,
                [SessionStage.CONVERSATION.value, SessionStage.BOOKED.value],
            ),
            _clause('live_duration', BackendTable.SESSION_METRICS, FilterOperator.GT, 90),
        ),),
    ),
    StageDefinition(
        label=MetricLabel.MEETING,
        filter=((
            _clause('stage', BackendTable.SESSION_METRICS, FilterOperator.IN, [SessionStage.BOOKED.value]),
        ),),
    ),
)

DEFAULT_STAGE_CONFIG = StageConfig(options=DEFAULT_STAGES, cumulative=False)


def build_metric_select(stage_config: StageConfig, stage_index: int) -> Dict[str, Any]:
    """
    Build the metric-details request body for one stage.

    Args:
        stage_config: The funnel definition.
        stage_index: Index of the stage in ``stage_config.options``.

    Returns:
        Dict with ``selects``, ``cnf`` and ``group_by`` keys. Counts are
        grouped by the session's resource_id (the dialer user id).
    """
    stage = stage_config.options[stage_index]
    combined: List[List[Dict[str, Any]]] = [list(group) for group in stage.filter]

    if stage_config.cumulative:
        for previous in stage_config.options[:stage_index]:
            combined.extend(list(group) for group in previous.filter)

    return {
        'selects': [{
            'column_type': 'CNF',
            'cnf': combined,
        }],
        'cnf': [],
        'group_by': {
            'column': {
                'table': BackendTable.SESSIONS_V2.value,
                'column_name': 'resource_id',
            }
        },
    }


def build_metric_selects(stage_config: StageConfig) -> List[Tuple[MetricLabel, Dict[str, Any]]]:
    """Build (label, select) pairs for every stage, in funnel order."""
    return [
        (stage.label, build_metric_select(stage_config, index))
        for index, stage in enumerate(stage_config.options)
    ]


# =============================================================================
# WIRE HELPERS
# =============================================================================


def encode_header_params(params: Dict[str, Any]) -> Dict[str, str]:
    """
    Encode request parameters as dialer headers.

    Each value is compact-JSON encoded with every character >= U+007F
    escaped as \\uXXXX, so header values stay ASCII.
    """
    headers = {'Content-Type': 'text/plain'}
    for key, value in params.items():
        encoded = json.dumps(value, separators=(',', ':'), ensure_ascii=True)
        headers[key] = encoded.replace('\x7f', '\\u007f')
    return headers


def to_vendor_timestamp(moment: datetime) -> int:
    """Convert a datetime to dialer microseconds (naive datetimes are UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    # Integer arithmetic; float timestamps lose the last microsecond
    delta = moment - _UNIX_EPOCH
    return (delta.days * 86400 + delta.seconds) * MICROS_PER_SECOND + delta.microseconds


def vendor_window(date_range: DateRange) -> Tuple[int, int]:
    """
    Dialer [start, end] window for an inclusive calendar date range.

    The window runs from 00:00:00 UTC on the start date to the last
    microsecond of the end date.
    """
    start = datetime.combine(date_range.start, time.min)
    end = datetime.combine(date_range.end + timedelta(days=1), time.min) - timedelta(microseconds=1)
    return to_vendor_timestamp(start), to_vendor_timestamp(end)


def _coerce_count(value: Any, user_id: str) -> int:
    if value is None:
        return 0
    try:
        count = int(round(float(value)))
    except (TypeError, ValueError):
        logger.warning(f"Non-numeric metric value {value!r} for user {user_id}; using 0")
        return 0
    if count < 0:
        logger.warning(f"Negative metric value {value!r} for user {user_id}; using 0")
        return 0
    return count


def process_metric_data(raw_data: Optional[Iterable[Any]]) -> Dict[str, int]:
    """
    Convert raw ``[user_id, value]`` tuples into a ``user_id -> count`` map.

    - A null id is reported under 'Unknown'.
    - An absent or null value counts as 0.
    - On duplicate ids the last value wins.
    - Entries that are not sequences are skipped with a warning.

    Args:
        raw_data: The metric-details payload (None is treated as empty).

    Returns:
        Mapping of user id to non-negative integer count.
    """
    counts: Dict[str, int] = {}
    if not raw_data:
        return counts

    for entry in raw_data:
        if not isinstance(entry, (list, tuple)) or len(entry) == 0:
            logger.warning(f"Skipping malformed metric entry: {entry!r}")
            continue
        user_id = UNKNOWN_USER_ID if entry[0] is None else str(entry[0])
        value = entry[1] if len(entry) > 1 else None
        counts[user_id] = _coerce_count(value, user_id)

    return counts


# =============================================================================
# CLIENT
# =============================================================================


@dataclass
class VendorSnapshot:
    """
    Everything the dialer reported for one date range.

    Attributes:
        users: Active dialer users, in the order the dialer listed them.
        values: Metric label value -> (user id -> count).
        team: Team payload passed through from get-visible-accounts.
    """
    users: List[VendorUser] = field(default_factory=list)
    values: Dict[str, Dict[str, int]] = field(default_factory=dict)
    team: Optional[Any] = None


class VendorMetricsClient:
    """
    Async client for the dialer API.

    A new httpx.AsyncClient is opened per call so the client holds no
    connection state between requests. Tests inject an
    ``httpx.MockTransport`` through ``transport``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        hostname: str = 'api.trellus.ai',
        team_id: Optional[str] = None,
        timeout: float = 30.0,
        stage_config: StageConfig = DEFAULT_STAGE_CONFIG,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.hostname = hostname
        self.team_id = team_id
        self.timeout = timeout
        self.stage_config = stage_config
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> 'VendorMetricsClient':
        stage_config = StageConfig(
            options=DEFAULT_STAGES,
            cumulative=settings.vendor_cumulative_stages,
        )
        return cls(
            api_key=settings.vendor_api_key,
            hostname=settings.vendor_hostname,
            team_id=settings.vendor_team_id,
            timeout=settings.vendor_timeout_seconds,
            stage_config=stage_config,
            transport=transport,
        )

    def _base_params(self) -> Dict[str, Any]:
        if not self.api_key:
            raise VendorConfigurationError("VENDOR_API_KEY is not configured")
        params: Dict[str, Any] = {'api_key': self.api_key}
        if self.team_id:
            params['team_id'] = self.team_id
        return params

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """
        Issue one GET against the dialer and decode the JSON body.

        Raises:
            VendorAPIError: On transport errors, non-200 status or invalid JSON.
        """
        url = f"https://{self.hostname}/{endpoint}"
        headers = encode_header_params(params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise VendorAPIError(f"Dialer request to {endpoint} failed: {e}") from e

        logger.debug(f"GET {endpoint} - status {response.status_code}, {len(response.content)} bytes")

        if response.status_code != 200:
            raise VendorAPIError(f"HTTP {response.status_code}: {response.text}")

        try:
            return response.json()
        except ValueError as e:
            raise VendorAPIError(
                f"Failed to parse response: {e}. Body: {response.text[:200]}"
            ) from e

    async def fetch_users(self) -> UsersResponse:
        """
        Fetch the visible accounts and keep active dialer users only.

        Raises:
            VendorAPIError: If the payload has no ``users`` list.
        """
        payload = await self._request(ENDPOINT_VISIBLE_ACCOUNTS, self._base_params())

        if not isinstance(payload, dict) or not isinstance(payload.get('users'), list):
            raise VendorAPIError("Failed to fetch users")

        users: List[VendorUser] = []
        for raw_user in payload['users']:
            if not isinstance(raw_user, dict) or 'user_id' not in raw_user:
                logger.warning(f"Skipping malformed dialer user: {raw_user!r}")
                continue
            user = VendorUser.model_validate(raw_user)
            if user.is_active_dialer:
                users.append(user)

        logger.info(f"Found {len(users)} active dialer users")
        return UsersResponse(users=users, team=payload.get('team'))

    async def fetch_metric(self, metric_select: Dict[str, Any], date_range: DateRange) -> List[Any]:
        """
        Fetch one metric select for a date range.

        Raises:
            VendorAPIError: If the payload is not a list of tuples.
        """
        start, end = vendor_window(date_range)
        params = self._base_params()
        params.update({
            'selects': metric_select['selects'],
            'cnf': metric_select['cnf'],
            'group_by': metric_select['group_by'],
            'start': start,
            'end': end,
        })

        payload = await self._request(ENDPOINT_METRIC_DETAILS, params)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise VendorAPIError(
                f"Malformed metric payload: expected a list, got {type(payload).__name__}"
            )
        return payload

    async def fetch_snapshot(self, date_range: DateRange) -> VendorSnapshot:
        """
        Fetch users and every funnel metric for a date range.

        Metric selects are fetched concurrently. When the dialer reports no
        active users no metric is requested.
        """
        users_response = await self.fetch_users()
        snapshot = VendorSnapshot(users=users_response.users, team=users_response.team)

        if not snapshot.users:
            logger.info("No active dialer users; skipping metric fetch")
            return snapshot

        selects = build_metric_selects(self.stage_config)
        payloads = await asyncio.gather(*[
            self.fetch_metric(metric_select, date_range)
            for _, metric_select in selects
        ])

        for (label, _), payload in zip(selects, payloads):
            snapshot.values[label.value] = process_metric_data(payload)

        return snapshot


__all__ = [
    'ENDPOINT_VISIBLE_ACCOUNTS',
    'ENDPOINT_METRIC_DETAILS',
    'UNKNOWN_USER_ID',
    'VendorAPIError',
    'VendorConfigurationError',
    'StageDefinition',
    'StageConfig',
    'DEFAULT_STAGES',
    'DEFAULT_STAGE_CONFIG',
    'build_metric_select',
    'build_metric_selects',
    'encode_header_params',
    'to_vendor_timestamp',
    'vendor_window',
    'process_metric_data',
    'VendorSnapshot',
    'VendorMetricsClient',
]
