"""
Team roster lookup.

The roster maps a person's display name to the team they sit on. Lookups
try the trimmed name verbatim first, then fall back to fuzzy matching
against every roster entry in roster order. People who are not on the
roster get the sentinel team 'NA'.

Roster files:
    - JSON: an object of {"Display Name": "Team"}
    - CSV: a header row with a name column and a team column
The packaged default lives in backend/data/roster.json.
"""

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, Mapping, Optional

import pandas as pd

from backend.models import MatchPolicy, RosterSummary
from backend.services.name_matching import get_matcher

logger = logging.getLogger(__name__)

UNASSIGNED_TEAM: str = 'NA'

DEFAULT_ROSTER_PATH = Path(__file__).resolve().parent.parent / 'data' / 'roster.json'

_CSV_NAME_COLUMNS = ('name', 'Name', 'NAME', 'User', 'user')
_CSV_TEAM_COLUMNS = ('team', 'Team', 'TEAM')


class RosterError(Exception):
    """The roster file is missing or malformed."""
    pass


class Roster:
    """
    In-memory person -> team lookup.

    Args:
        mapping: Display name -> team. Insertion order is the fuzzy-match
            scan order.
        policy: Fuzzy matching policy used after the exact lookup misses.
    """

    def __init__(self, mapping: Mapping[str, str], policy: MatchPolicy = MatchPolicy.TOKEN_OVERLAP):
        self._mapping: Dict[str, str] = {
            str(name).strip(): str(team).strip()
            for name, team in mapping.items()
            if name and team
        }
        self.policy = policy
        self._matches = get_matcher(policy)

    def team_for(self, name: Optional[str]) -> str:
        """Return the team for ``name``, or 'NA' when it is not on the roster."""
        if not name or not name.strip():
            return UNASSIGNED_TEAM

        exact = self._mapping.get(name.strip())
        if exact:
            return exact

        for roster_name, team in self._mapping.items():
            if self._matches(name, roster_name):
                return team

        return UNASSIGNED_TEAM

    def team_counts(self) -> Dict[str, int]:
        return dict(Counter(self._mapping.values()))

    def summary(self) -> RosterSummary:
        return RosterSummary(members=len(self), teams=self.team_counts())

    def __len__(self) -> int:
        return len(self._mapping)


def _load_csv(path: Path) -> Dict[str, str]:
    try:
        df = pd.read_csv(path, dtype=str)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise RosterError(f"Roster CSV {path} could not be read: {e}") from e
    name_column = next((c for c in _CSV_NAME_COLUMNS if c in df.columns), None)
    team_column = next((c for c in _CSV_TEAM_COLUMNS if c in df.columns), None)
    if name_column is None or team_column is None:
        raise RosterError(f"Roster CSV {path} needs a name column and a team column")

    df = df[[name_column, team_column]].dropna()
    return dict(zip(df[name_column], df[team_column]))


def load_roster(
    path: Optional[str] = None,
    policy: MatchPolicy = MatchPolicy.TOKEN_OVERLAP,
) -> Roster:
    """
    Load a roster from JSON or CSV.

    Args:
        path: Roster file; the packaged default is used when None.
        policy: Fuzzy matching policy for the returned Roster.

    Raises:
        RosterError: If the file is missing or has the wrong shape.
    """
    roster_path = Path(path) if path else DEFAULT_ROSTER_PATH
    if not roster_path.exists():
        raise RosterError(f"Roster file not found: {roster_path}")

    if roster_path.suffix.lower() == '.csv':
        mapping = _load_csv(roster_path)
    else:
        with roster_path.open(encoding='utf-8') as f:
            try:
                mapping = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise RosterError(f"Roster file {roster_path} is not valid JSON: {e}") from e
        if not isinstance(mapping, dict):
            raise RosterError(f"Roster file {roster_path} must hold a JSON object of name -> team")

    roster = Roster(mapping, policy=policy)
    logger.info(f"Loaded roster with {len(roster)} members from {roster_path.name}")
    return roster


__all__ = [
    'UNASSIGNED_TEAM',
    'DEFAULT_ROSTER_PATH',
    'RosterError',
    'Roster',
    'load_roster',
]
