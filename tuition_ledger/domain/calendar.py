"""Academic calendar helpers - naming and chronological ordering of periods"""

from typing import Iterable, List, Optional

from tuition_ledger.domain.exceptions import NotFoundError
from tuition_ledger.domain.models import Period

_TERM_ALIASES = {
    "1st Term": {"first term", "1st term", "first", "1st"},
    "2nd Term": {"second term", "2nd term", "second", "2nd"},
    "3rd Term": {"third term", "3rd term", "third", "3rd"},
}


def normalize_term_name(name: str) -> str:
    """Canonical term label ("first term" -> "1st Term"); unknown names pass through"""
    cleaned = (name or "").strip().lower()
    for canonical, aliases in _TERM_ALIASES.items():
        if cleaned in aliases:
            return canonical
    return name


def chronological(periods: Iterable[Period]) -> List[Period]:
    return sorted(periods, key=lambda p: p.sequence)


def find_period(periods: Iterable[Period], session_id: str, term_id: str) -> Period:
    """
    Raises:
        NotFoundError: the (session, term) pair is not on the calendar
    """
    for period in periods:
        if period.key == (session_id, term_id):
            return period
    raise NotFoundError(f"Unknown period: session={session_id} term={term_id}")


def previous_period(periods: Iterable[Period], session_id: str, term_id: str) -> Optional[Period]:
    """
    The period immediately before (session_id, term_id) by calendar sequence.

    Names are never compared; a term that opens the calendar has no predecessor.
    """
    ordered = chronological(periods)
    target = find_period(ordered, session_id, term_id)
    earlier = [p for p in ordered if p.sequence < target.sequence]
    return earlier[-1] if earlier else None
