"""
Enumeration definitions for the Sales Pulse backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models and pydantic-settings environment parsing.

Groups:
- Dialer API vocabulary: MetricLabel, SessionStage, FilterOperator, BackendTable
- Reconciliation vocabulary: MeetingSource, MatchPolicy
"""

from enum import Enum


class MetricLabel(str, Enum):
    """
    Funnel metrics reported per dialer user.

    The order of the members is the order of the funnel stages and the
    order the columns are displayed in.

    - Dial: every outbound session
    - Connect: sessions with live duration > 0
    - Pitch: PITCHED/CONVERSATION/BOOKED sessions longer than 60 seconds
    - Conversation: CONVERSATION/BOOKED sessions longer than 90 seconds
    - Meeting: BOOKED sessions plus externally logged meetings
    """
    DIAL = "Dial"
    CONNECT = "Connect"
    PITCH = "Pitch"
    CONVERSATION = "Conversation"
    MEETING = "Meeting"


class SessionStage(str, Enum):
    """Pipeline stage recorded by the dialer on a session."""
    PITCHED = "PITCHED"
    CONVERSATION = "CONVERSATION"
    BOOKED = "BOOKED"


class FilterOperator(str, Enum):
    """Comparison operators accepted in dialer CNF filter clauses."""
    GT = "GT"
    IN = "IN"


class BackendTable(str, Enum):
    """Dialer tables referenced by filter clauses and group-by columns."""
    SESSIONS_V2 = "SESSIONS_V2"
    SESSION_METRICS = "SESSION_METRICS"


class MeetingSource(str, Enum):
    """
    Origin of a meeting detail.

    - spreadsheet: meeting logged manually in the external meeting source
    """
    SPREADSHEET = "spreadsheet"


class MatchPolicy(str, Enum):
    """
    Fuzzy name matching policies.

    - token_overlap: at least min(len(a), len(b), 2) shared tokens longer
      than two characters, or equal normalized forms
    - containment: equal first and last tokens, or one full name contained
      in the other
    """
    TOKEN_OVERLAP = "token_overlap"
    CONTAINMENT = "containment"
