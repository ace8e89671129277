"""
Name normalization and fuzzy name matching.

The dialer, the meetings spreadsheet and the roster spell the same person in
different ways ("Aashima Soni", "aashima  soni", "HARSH RAJ"). There is no
shared key between them, so people are joined by a heuristic name match.

Policies:
    TOKEN_OVERLAP (canonical):
        1. Normalize both names; equal normalized forms match.
        2. Split into whitespace tokens.
        3. Count cross-product token pairs that are equal and longer than
           two characters (initials and short particles never count).
        4. Match when the count >= min(len(tokens_a), len(tokens_b), 2).
    CONTAINMENT:
        Equal first and last tokens, or one normalized name contained in the
        other. Looser; only used where explicitly configured.

Both are heuristics. False positives and negatives are accepted; callers pick
one policy per call site and never combine them.
"""

import re
from typing import Callable, Dict, List, Optional

from backend.models.enums import MatchPolicy


# Minimum token length (exclusive) for a token to count as a shared token
MIN_SIGNIFICANT_TOKEN_LENGTH: int = 2

# Tokens that must be shared before two multi-token names match
REQUIRED_SHARED_TOKENS: int = 2

_NON_ALPHA_RE = re.compile(r'[^a-z\s]')
_WHITESPACE_RE = re.compile(r'\s+')


def normalize_name(name: Optional[str]) -> str:
    """
    Canonicalize a free-text name for comparison.

    Lowercases (ASCII), removes characters outside a-z and whitespace,
    collapses whitespace runs to one space and trims. Idempotent.

    Args:
        name: Free-text name; None and empty strings are allowed.

    Returns:
        The normalized name, or '' for missing input.

    Example:
        >>> normalize_name("  Aashima   Soni")
        'aashima soni'
    """
    if not name:
        return ''
    lowered = str(name).lower()
    stripped = _NON_ALPHA_RE.sub('', lowered)
    return _WHITESPACE_RE.sub(' ', stripped).strip()


def _tokens(normalized: str) -> List[str]:
    return normalized.split(' ') if normalized else []


def names_match(name_a: Optional[str], name_b: Optional[str]) -> bool:
    """
    Decide whether two names denote the same person (TOKEN_OVERLAP policy).

    Equal normalized forms always match, including two names that both
    normalize to an empty string. An empty name never matches a non-empty one.

    Args:
        name_a: First name (any casing/spacing).
        name_b: Second name (any casing/spacing).

    Returns:
        True if the names are considered the same person.

    Examples:
        >>> names_match("Aashima Soni", "aashima soni")
        True
        >>> names_match("John Smith", "Jane Doe")
        False
        >>> names_match("Jo Li", "Jo Li")
        True
    """
    normalized_a = normalize_name(name_a)
    normalized_b = normalize_name(name_b)

    if normalized_a == normalized_b:
        return True

    if not normalized_a or not normalized_b:
        return False

    tokens_a = _tokens(normalized_a)
    tokens_b = _tokens(normalized_b)

    shared = 0
    for token_a in tokens_a:
        for token_b in tokens_b:
            if token_a == token_b and len(token_a) > MIN_SIGNIFICANT_TOKEN_LENGTH:
                shared += 1

    return shared >= min(len(tokens_a), len(tokens_b), REQUIRED_SHARED_TOKENS)


def names_match_containment(name_a: Optional[str], name_b: Optional[str]) -> bool:
    """
    Decide whether two names denote the same person (CONTAINMENT policy).

    Matches when the first and last tokens are equal, or when one normalized
    name is a substring of the other ("Saloni K" vs "saloni k sharma").
    """
    normalized_a = normalize_name(name_a)
    normalized_b = normalize_name(name_b)

    if not normalized_a or not normalized_b:
        return False

    if normalized_a == normalized_b:
        return True

    tokens_a = _tokens(normalized_a)
    tokens_b = _tokens(normalized_b)
    if tokens_a[0] == tokens_b[0] and tokens_a[-1] == tokens_b[-1]:
        return True

    return normalized_a in normalized_b or normalized_b in normalized_a


_POLICIES: Dict[MatchPolicy, Callable[[Optional[str], Optional[str]], bool]] = {
    MatchPolicy.TOKEN_OVERLAP: names_match,
    MatchPolicy.CONTAINMENT: names_match_containment,
}


def get_matcher(
    policy: MatchPolicy = MatchPolicy.TOKEN_OVERLAP
) -> Callable[[Optional[str], Optional[str]], bool]:
    """
    Return the match function for a policy.

    Raises:
        ValueError: If the policy is unknown.
    """
    try:
        return _POLICIES[MatchPolicy(policy)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown match policy: {policy}")


__all__ = [
    'MIN_SIGNIFICANT_TOKEN_LENGTH',
    'REQUIRED_SHARED_TOKENS',
    'normalize_name',
    'names_match',
    'names_match_containment',
    'get_matcher',
]
