"""
Daily totals and bounded history.

Folds impact records into per-day running sums and a FIFO history of
the most recent records. The aggregator does no deduplication; callers
make sure each observed item is folded at most once.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, Optional

from ecoprompt.storage.models import DayTotals, ImpactRecord

HISTORY_LIMIT = 500

DailyTotals = Dict[str, DayTotals]
History = Deque[ImpactRecord]


def new_history(records: Optional[Iterable[ImpactRecord]] = None) -> History:
    """Create a bounded history; extra records are evicted oldest first."""
    return deque(records or (), maxlen=HISTORY_LIMIT)


@dataclass(frozen=True)
class FoldResult:
    """Totals and history after an aggregation step."""
    totals: DailyTotals
    history: History


def fold(totals: DailyTotals, history: History, record: ImpactRecord) -> FoldResult:
    """Add a record to its day's totals and append it to history.

    The inputs are left untouched; the result holds fresh copies.

    Args:
        totals: Existing totals keyed by ISO date
        history: Existing history, oldest first
        record: Record to fold in

    Returns:
        FoldResult with the updated totals and history
    """
    updated = dict(totals)
    updated[record.date] = updated.get(record.date, DayTotals()).plus(record)

    appended = new_history(history)
    appended.append(record)
    return FoldResult(totals=updated, history=appended)


def reset_day(totals: DailyTotals, history: History, date: str) -> FoldResult:
    """Zero one day's totals and drop that day's history entries."""
    updated = dict(totals)
    updated[date] = DayTotals()
    kept = new_history(record for record in history if record.date != date)
    return FoldResult(totals=updated, history=kept)


def clear_all() -> FoldResult:
    """Empty totals and history."""
    return FoldResult(totals={}, history=new_history())
