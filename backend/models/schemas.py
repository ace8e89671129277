"""
Pydantic request/response models for the Sales Pulse backend.

This module provides type-safe data validation and serialization for all API
contracts: dialer users, reconciled metric rows, meeting details, date ranges,
external source statistics, and the natural-language query contract.

Field names are camelCase where they are part of the dashboard's JSON
contract, and snake_case where they mirror the dialer API payload
(VendorUser).

All models use Pydantic v2 syntax with proper field validation and examples.
"""

from datetime import datetime, date as DateType
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.models.enums import MeetingSource, MetricLabel


# =============================================================================
# Dialer API Models
# =============================================================================


class VendorUser(BaseModel):
    """
    A user account as returned by the dialer's get-visible-accounts endpoint.

    Only users that can dial and belong to an active team are reported on.
    Unknown payload keys are ignored.
    """
    model_config = ConfigDict(
        extra='ignore',
        json_schema_extra={
            "example": {
                "user_id": "u_123",
                "user_name": "Aashima Soni",
                "can_dial": True,
                "team_is_active": True,
            }
        }
    )

    user_id: str = Field(
        ...,
        description="Opaque, stable dialer user identifier"
    )
    user_name: str = Field(
        default="",
        description="Display name as spelled in the dialer"
    )
    can_dial: bool = Field(
        default=False,
        description="Whether the account has a dialer seat"
    )
    team_is_active: bool = Field(
        default=False,
        description="Whether the account's team is active"
    )

    @field_validator('user_id', mode='before')
    @classmethod
    def _coerce_user_id(cls, value: Any) -> str:
        if value is None:
            return 'Unknown'
        return str(value)

    @field_validator('user_name', mode='before')
    @classmethod
    def _coerce_user_name(cls, value: Any) -> str:
        return '' if value is None else str(value)

    @property
    def is_active_dialer(self) -> bool:
        return self.can_dial and self.team_is_active


class UsersResponse(BaseModel):
    """Active dialer users plus the team payload the dialer returned."""
    users: List[VendorUser] = Field(default_factory=list)
    team: Optional[Any] = Field(
        default=None,
        description="Team object passed through from the dialer"
    )


# =============================================================================
# Reconciled Metric Models
# =============================================================================


class MeetingDetail(BaseModel):
    """
    One reconciled meeting record attached to a metric row.

    Timestamps may be None only for records whose timestamp could not be
    parsed; such records never pass date filtering, so details attached to a
    row always carry a timestamp in practice.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "timestamp": "2025-10-14T14:22:23",
                "sourceOfLead": "LinkedIn",
                "leadName": "Priya Menon",
                "companyName": "Acme Corp",
                "currentStage": "Discovery",
                "meetingBookedDate": "10/14/2025",
                "source": "spreadsheet",
            }
        }
    )

    timestamp: Optional[datetime] = Field(
        default=None,
        description="When the meeting was logged"
    )
    sourceOfLead: str = Field(
        default="",
        description="Lead-source channel as typed in the spreadsheet"
    )
    leadName: str = Field(
        default="",
        description="Individual the rep was speaking to"
    )
    companyName: str = Field(
        default="",
        description="Prospect company"
    )
    currentStage: str = Field(
        default="",
        description="Pipeline stage of the opportunity"
    )
    meetingBookedDate: str = Field(
        default="",
        description="Free-text date of the cold call conversion"
    )
    source: MeetingSource = Field(
        default=MeetingSource.SPREADSHEET,
        description="Whether the record came from the dialer or the spreadsheet"
    )


class MeetingCounts(BaseModel):
    """Breakdown of the Meeting metric by origin."""
    vendor: int = Field(default=0, ge=0, description="BOOKED sessions reported by the dialer")
    external: int = Field(default=0, ge=0, description="Matched spreadsheet meetings")
    total: int = Field(default=0, ge=0, description="vendor + external")


class MetricRow(BaseModel):
    """
    One row of the metrics table: a dialer user with combined counts.

    ``values`` is keyed by MetricLabel value. The Meeting entry already
    includes the matched external meetings.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "userId": "u_123",
                "userName": "Aashima Soni",
                "values": {"Dial": 120, "Connect": 40, "Pitch": 12, "Conversation": 6, "Meeting": 4},
                "team": "Botzilla",
                "meetingCounts": {"vendor": 2, "external": 2, "total": 4},
                "meetingDetails": [],
            }
        }
    )

    userId: str = Field(..., description="Dialer user identifier")
    userName: str = Field(..., description="Dialer display name")
    values: Dict[str, int] = Field(
        default_factory=dict,
        description="Metric label -> non-negative count"
    )
    team: str = Field(
        default="NA",
        description="Roster team, or 'NA' when the user is not on the roster"
    )
    meetingCounts: MeetingCounts = Field(default_factory=MeetingCounts)
    meetingDetails: List[MeetingDetail] = Field(
        default_factory=list,
        description="Reconciled meeting records, newest first"
    )

    @field_validator('values')
    @classmethod
    def _non_negative_counts(cls, values: Dict[str, int]) -> Dict[str, int]:
        for label, count in values.items():
            if count < 0:
                raise ValueError(f"Metric '{label}' has a negative count: {count}")
        return values


class DateRange(BaseModel):
    """Inclusive calendar date range of a metrics query."""
    start: DateType = Field(..., description="First day included")
    end: DateType = Field(..., description="Last day included")

    @property
    def is_inverted(self) -> bool:
        return self.start > self.end


class ExternalSourceStats(BaseModel):
    """
    Summary of how the external meeting source contributed to a query.

    ``available`` is False when the source failed or timed out and the
    response holds vendor-only numbers.
    """
    available: bool = Field(default=False)
    recordsLoaded: int = Field(default=0, ge=0, description="Rows accepted by the spreadsheet adapter")
    recordsDropped: int = Field(default=0, ge=0, description="Rows dropped for a missing name or timestamp")
    recordsInRange: int = Field(default=0, ge=0, description="Matched records inside the date range")
    recordsExcludedBySource: int = Field(default=0, ge=0, description="Matched in-range records with an excluded lead source")
    recordsUnparseable: int = Field(default=0, ge=0, description="Records whose timestamp could not be parsed")
    groupsMatched: int = Field(default=0, ge=0, description="Name groups matched to at least one dialer user")
    groupsUnmatched: int = Field(default=0, ge=0, description="Name groups matched to no dialer user")
    unmatchedNames: List[str] = Field(default_factory=list)


class MetricsResponse(BaseModel):
    """Response of a metrics query."""
    rows: List[MetricRow] = Field(default_factory=list)
    dateRange: DateRange
    sortedBy: MetricLabel = Field(default=MetricLabel.DIAL)
    externalSource: ExternalSourceStats = Field(default_factory=ExternalSourceStats)


# =============================================================================
# Natural-Language Query Models
# =============================================================================


class AIQueryRequest(BaseModel):
    """Free-text question typed into the dashboard's query box."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={"example": {"query": "Who booked the most meetings last week?"}}
    )

    query: str = Field(..., min_length=1, description="Natural-language question")


class DateExtraction(BaseModel):
    """Date range and intent extracted from a question by the LLM."""
    startDate: DateType
    endDate: DateType
    intent: str = Field(default="", description="Short description of what the user wants")

    @field_validator('intent', mode='before')
    @classmethod
    def _coerce_intent(cls, value: Any) -> str:
        return '' if value is None else str(value)


class AIQueryResponse(BaseModel):
    """Conversational answer plus the data it was computed from."""
    query: str
    dateRange: DateRange
    intent: str = ""
    answer: str
    dataUsed: MetricsResponse


# =============================================================================
# Roster Models
# =============================================================================


class RosterSummary(BaseModel):
    """Roster size and team distribution."""
    members: int = Field(default=0, ge=0)
    teams: Dict[str, int] = Field(default_factory=dict)
