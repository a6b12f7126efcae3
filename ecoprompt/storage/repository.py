"""
Repository pattern for footprint data.

Maps settings, day totals and history onto named records in a Store.
"""

import logging
from typing import Any, Callable, Dict, Optional

from ecoprompt.core.modes import Settings
from ecoprompt.core.totals import DailyTotals, History, new_history
from .models import DayTotals, ImpactRecord
from .store import Store

logger = logging.getLogger(__name__)

SETTINGS_KEY = "ecoprompt_settings"
TOTALS_KEY = "ecoprompt_totals"
HISTORY_KEY = "ecoprompt_history"


class FootprintRepository:
    """Typed access to the records the engine keeps in a Store.

    Reads and writes are not transactional: two processes folding into
    the same store can race, and the last write wins.
    """

    def __init__(self, store: Store, default_settings: Optional[Settings] = None):
        self.store = store
        self.default_settings = default_settings or Settings()

    def initialize_defaults(self) -> None:
        """Seed any missing records with their empty defaults."""
        if self.store.get(SETTINGS_KEY) is None:
            self.store.set(SETTINGS_KEY, self.default_settings.to_dict())
        if self.store.get(TOTALS_KEY) is None:
            self.store.set(TOTALS_KEY, {})
        if self.store.get(HISTORY_KEY) is None:
            self.store.set(HISTORY_KEY, [])

    def load_settings(self) -> Settings:
        return Settings.from_dict(self.store.get(SETTINGS_KEY), self.default_settings)

    def save_settings(self, settings: Settings) -> None:
        self.store.set(SETTINGS_KEY, settings.to_dict())

    def load_totals(self) -> DailyTotals:
        raw = self.store.get(TOTALS_KEY) or {}
        return {date: DayTotals.from_dict(values or {}) for date, values in raw.items()}

    def load_history(self) -> History:
        raw = self.store.get(HISTORY_KEY) or []
        records = []
        for entry in raw:
            try:
                records.append(ImpactRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed history entry: %s", e)
        return new_history(records)

    def save(self, totals: DailyTotals, history: History) -> None:
        """Persist totals and history.

        Raises:
            StoreWriteFailure: If either record cannot be written
        """
        self.store.set(TOTALS_KEY, {date: day.to_dict() for date, day in totals.items()})
        self.store.set(HISTORY_KEY, [record.to_dict() for record in history])

    def subscribe_settings(self, listener: Callable[[Settings, Settings], None]) -> Callable[[], None]:
        """Call ``listener(previous, current)`` whenever stored settings change."""
        def on_change(key: str, old: Any, new: Any) -> None:
            if key == SETTINGS_KEY:
                listener(
                    Settings.from_dict(old, self.default_settings),
                    Settings.from_dict(new, self.default_settings),
                )
        return self.store.subscribe(on_change)

    def subscribe_totals(self, listener: Callable[[DailyTotals], None]) -> Callable[[], None]:
        """Call ``listener(totals)`` whenever stored totals change."""
        def on_change(key: str, old: Any, new: Any) -> None:
            if key == TOTALS_KEY:
                raw: Dict[str, Any] = new or {}
                listener({date: DayTotals.from_dict(values or {}) for date, values in raw.items()})
        return self.store.subscribe(on_change)


class SettingsProvider:
    """Read-only view of settings for the engine, with change notification."""

    def __init__(self, repository: FootprintRepository):
        self._repository = repository

    def get(self) -> Settings:
        return self._repository.load_settings()

    def subscribe(self, listener: Callable[[Settings, Settings], None]) -> Callable[[], None]:
        return self._repository.subscribe_settings(listener)
