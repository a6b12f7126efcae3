"""
Impact estimation engine.

Runs observed content through classification, unit estimation and
impact calculation, then folds the resulting record into the stored
totals and history.

Session state (settings snapshot, totals, history) is held on the
engine instance rather than in module globals, so several engines can
run side by side against different stores.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Hashable, Optional, Set, Union

from .formatting import format_number
from .impact import ImpactPartial, compute_impact
from .modality import Modality, NO_HINTS, StructuralHints, classify, classify_intent
from .modes import Settings, is_greener, resolve_parameters
from .reference import EnergyReference, ReferenceLoader, ReferenceUnavailable
from .token_counter import estimate_prompt_units, estimate_units
from .totals import DailyTotals, FoldResult, History, clear_all, fold, new_history, reset_day
from ecoprompt.storage.models import DayTotals, ImpactRecord
from ecoprompt.storage.repository import FootprintRepository, SettingsProvider
from ecoprompt.storage.store import StoreReadFailure, StoreWriteFailure

logger = logging.getLogger(__name__)

# Responses shorter than this with no media are treated as chrome, not content
MIN_RESPONSE_CHARS = 20
TIP_THRESHOLD_TOKENS = 1500
ENERGY_GOAL_WH = 10.0


class InvalidManualInput(ValueError):
    """Raised when a manual entry carries a non-positive or non-numeric unit count."""


class OutcomeStatus(Enum):
    """What happened to one piece of content."""
    RECORDED = "recorded"
    UNKNOWN = "unknown"  # impact could not be estimated
    SKIPPED = "skipped"  # too little content to estimate


@dataclass(frozen=True)
class EstimationOutcome:
    """Result of observing content or logging a manual entry."""
    status: OutcomeStatus
    modality: Modality
    units: float = 0
    tokens: int = 0
    impact: Optional[ImpactPartial] = None
    record: Optional[ImpactRecord] = None
    persisted: bool = False
    tip: Optional[str] = None

    @property
    def impact_known(self) -> bool:
        return self.impact is not None


@dataclass(frozen=True)
class PreviewOutcome:
    """Impact preview for a draft prompt; never recorded."""
    modality: Modality
    units: float
    tokens: int
    impact: Optional[ImpactPartial]


@dataclass
class SessionState:
    """In-memory view of the current session, owned by one engine."""
    settings: Settings
    totals: DailyTotals = field(default_factory=dict)
    history: History = field(default_factory=new_history)

    def day(self, date: str) -> DayTotals:
        return self.totals.get(date, DayTotals())


class ClaimRegistry:
    """Marks observed items so each is estimated at most once.

    Callers claim an item before scheduling its estimation; a second
    claim for the same key is refused.
    """

    def __init__(self):
        self._claimed: Set[Hashable] = set()

    def claim(self, key: Hashable) -> bool:
        """Claim an item; returns False if it was already claimed."""
        if key in self._claimed:
            return False
        self._claimed.add(key)
        return True

    def is_claimed(self, key: Hashable) -> bool:
        return key in self._claimed

    def __len__(self) -> int:
        return len(self._claimed)


def greener_tip(impact: ImpactPartial) -> Optional[str]:
    """Suggest a lighter alternative for long text turns and image generation."""
    if impact.tokens > TIP_THRESHOLD_TOKENS or impact.modality == Modality.IMAGE:
        return (
            "Tip: You could cut energy use by ~40% with a shorter prompt or smaller model. "
            f"This turn used {format_number(impact.energy_wh, 2)} Wh."
        )
    return None


def goal_progress(day: DayTotals, goal_wh: float = ENERGY_GOAL_WH) -> float:
    """Fraction of the daily energy goal used, capped at 1."""
    if goal_wh <= 0:
        return 1.0
    return min(1.0, day.energy_wh / goal_wh)


class ImpactEngine:
    """Estimates content impact and keeps totals and history up to date."""

    def __init__(
        self,
        reference: Optional[EnergyReference],
        repository: FootprintRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the engine.

        Args:
            reference: Loaded energy reference, or None if it failed to load
            repository: Repository over the Store holding settings, totals and history
            clock: Source of the current local time (defaults to datetime.now)
        """
        self.reference = reference
        self.repository = repository
        self.settings_provider = SettingsProvider(repository)
        self._clock = clock or datetime.now
        self._unsaved = False
        try:
            self.state = SessionState(
                settings=self.settings_provider.get(),
                totals=repository.load_totals(),
                history=repository.load_history(),
            )
        except StoreReadFailure as e:
            logger.warning("Could not read stored footprint, starting empty: %s", e)
            self.state = SessionState(settings=repository.default_settings)
        self._unsubscribe = [
            self.settings_provider.subscribe(self._on_settings_changed),
            repository.subscribe_totals(self._on_totals_changed),
        ]

    @classmethod
    async def create(
        cls,
        loader: ReferenceLoader,
        repository: FootprintRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ImpactEngine":
        """Load the energy reference and build an engine.

        A failed load is logged once here; the engine is still returned
        and reports every impact as unknown.
        """
        try:
            reference = await loader.load()
        except ReferenceUnavailable as e:
            logger.error("Energy profile unavailable: %s", e)
            reference = None
        return cls(reference, repository, clock)

    @property
    def profile_unavailable(self) -> bool:
        return self.reference is None

    def close(self) -> None:
        """Stop listening for store changes."""
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def today_key(self) -> str:
        return self._clock().date().isoformat()

    def today_totals(self) -> DayTotals:
        return self.state.day(self.today_key())

    def estimate(self, modality: Union[Modality, str], units: float, tokens: int = 0) -> Optional[ImpactPartial]:
        """Price a unit count under the current settings without recording it."""
        if self.reference is None:
            return None
        params = resolve_parameters(self.state.settings, self.reference)
        return compute_impact(modality, units, tokens, params, self.reference)

    def observe(
        self,
        text: str,
        hints: StructuralHints = NO_HINTS,
        duration_minutes: Optional[float] = None,
    ) -> EstimationOutcome:
        """Estimate and record one piece of observed AI content.

        Duplicate suppression is the caller's job (see ClaimRegistry);
        every call that reaches the calculator folds a new record.

        Args:
            text: Extracted text of the response
            hints: Structural media hints found in the response
            duration_minutes: Known audio duration, if any

        Returns:
            EstimationOutcome; its impact is None when it could not be estimated
        """
        text = text or ""
        has_rich_media = hints.has_image_media or hints.has_audio_media or hints.image_count > 0
        if len(text.strip()) < MIN_RESPONSE_CHARS and not has_rich_media:
            return EstimationOutcome(status=OutcomeStatus.SKIPPED, modality=classify(text, hints))

        modality = classify(text, hints)
        estimate = estimate_units(modality, text, hints, duration_minutes)
        impact = self.estimate(modality, estimate.units, estimate.tokens)
        if impact is None:
            logger.info("Impact unknown for %s content", modality.value)
            return EstimationOutcome(
                status=OutcomeStatus.UNKNOWN,
                modality=modality,
                units=estimate.units,
                tokens=estimate.tokens,
            )

        record = self._make_record(impact, manual=False)
        persisted = self._fold(record)
        return EstimationOutcome(
            status=OutcomeStatus.RECORDED,
            modality=modality,
            units=estimate.units,
            tokens=estimate.tokens,
            impact=impact,
            record=record,
            persisted=persisted,
            tip=greener_tip(impact),
        )

    def preview(self, draft: str) -> PreviewOutcome:
        """Estimate the impact a draft prompt is likely to have."""
        modality = classify_intent(draft)
        if not (draft or "").strip():
            return PreviewOutcome(modality=modality, units=0, tokens=0, impact=None)
        guess = estimate_prompt_units(modality, draft)
        impact = self.estimate(modality, guess.units, guess.tokens)
        return PreviewOutcome(modality=modality, units=guess.units, tokens=guess.tokens, impact=impact)

    def log_manual(self, modality: Union[Modality, str], units) -> EstimationOutcome:
        """Record a user-entered usage, bypassing classification.

        Raises:
            InvalidManualInput: If units is not a positive finite number
        """
        units = _validate_manual_units(units)

        try:
            modality = Modality(modality)
        except ValueError:
            logger.info("Unsupported manual modality: %s", modality)
            return EstimationOutcome(status=OutcomeStatus.UNKNOWN, modality=Modality.UNKNOWN, units=units)

        tokens = int(units) if modality in (Modality.TEXT, Modality.PDF) else 0
        impact = self.estimate(modality, units, tokens)
        if impact is None:
            return EstimationOutcome(status=OutcomeStatus.UNKNOWN, modality=modality, units=units, tokens=tokens)

        record = self._make_record(impact, manual=True)
        persisted = self._fold(record)
        return EstimationOutcome(
            status=OutcomeStatus.RECORDED,
            modality=modality,
            units=units,
            tokens=tokens,
            impact=impact,
            record=record,
            persisted=persisted,
        )

    def reset_today(self) -> bool:
        """Zero today's totals and drop today's history. Returns whether it persisted."""
        totals, history = self._current()
        return self._apply(reset_day(totals, history, self.today_key()))

    def clear_history(self) -> bool:
        """Drop all totals and history. Returns whether it persisted."""
        return self._apply(clear_all())

    def _make_record(self, impact: ImpactPartial, manual: bool) -> ImpactRecord:
        now = self._clock()
        return ImpactRecord(
            timestamp=now,
            date=now.date().isoformat(),
            modality=impact.modality,
            units=impact.units,
            tokens=impact.tokens,
            energy_wh=impact.energy_wh,
            co2_g=impact.co2_g,
            water_ml=impact.water_ml,
            manual=manual,
        )

    def _current(self):
        # After a failed write the session copy is ahead of the store
        if self._unsaved:
            return self.state.totals, self.state.history
        try:
            return self.repository.load_totals(), self.repository.load_history()
        except StoreReadFailure as e:
            logger.warning("Could not read stored footprint, folding into session state: %s", e)
            self._unsaved = True
            return self.state.totals, self.state.history

    def _fold(self, record: ImpactRecord) -> bool:
        totals, history = self._current()
        return self._apply(fold(totals, history, record))

    def _apply(self, result: FoldResult) -> bool:
        self.state.totals = result.totals
        self.state.history = result.history
        try:
            self.repository.save(result.totals, result.history)
        except StoreWriteFailure as e:
            logger.warning("Footprint update kept in memory only; it may not survive a reload: %s", e)
            self._unsaved = True
            return False
        self._unsaved = False
        return True

    def _on_settings_changed(self, previous: Settings, current: Settings) -> None:
        self.state.settings = current
        if is_greener(previous, current):
            logger.info("Switched to a greener mode: %s", current.mode)

    def _on_totals_changed(self, totals: DailyTotals) -> None:
        self.state.totals = totals


def _validate_manual_units(units) -> float:
    if isinstance(units, bool):
        raise InvalidManualInput("units must be a number")
    if isinstance(units, str):
        try:
            units = float(units)
        except ValueError:
            raise InvalidManualInput(f"units must be a number, got {units!r}")
    if not isinstance(units, (int, float)):
        raise InvalidManualInput("units must be a number")
    if not math.isfinite(units) or units <= 0:
        raise InvalidManualInput("units must be > 0")
    return units
