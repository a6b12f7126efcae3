"""
Operating modes and settings resolution.

Turns the user's settings snapshot into the parameters the impact
calculator needs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .reference import EnergyReference


class Mode(Enum):
    """Coarse model-size proxy selected by the user."""
    SMALL = "small"
    BALANCED = "balanced"
    LARGE = "large"


MODE_MULTIPLIERS: Dict[str, float] = {
    Mode.SMALL.value: 0.4,
    Mode.BALANCED.value: 1.0,
    Mode.LARGE.value: 2.0,
}
DEFAULT_MODE = Mode.BALANCED.value
DEFAULT_THEME = "sage"


@dataclass(frozen=True)
class Settings:
    """Snapshot of user settings.

    ``mode`` is kept as a plain string because stored settings may
    carry a value this version does not know; such modes price at 1.0.
    """
    mode: str = DEFAULT_MODE
    theme: str = DEFAULT_THEME
    grid_intensity: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "theme": self.theme,
            "gridIntensity": self.grid_intensity,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], defaults: Optional["Settings"] = None) -> "Settings":
        """Merge a stored settings record over defaults."""
        base = defaults or cls()
        data = data or {}
        grid = data.get("gridIntensity", base.grid_intensity)
        return cls(
            mode=data.get("mode") or base.mode,
            theme=data.get("theme") or base.theme,
            grid_intensity=float(grid) if isinstance(grid, (int, float)) and not isinstance(grid, bool) else None,
        )


@dataclass(frozen=True)
class CalculationParams:
    """Resolved inputs for one impact calculation."""
    mode: str
    multiplier: float
    grid_intensity: float


def mode_multiplier(mode: Optional[str]) -> float:
    """Energy multiplier for a mode; unrecognised modes count as balanced."""
    return MODE_MULTIPLIERS.get(mode or DEFAULT_MODE, 1.0)


def resolve_parameters(settings: Optional[Settings], reference: EnergyReference) -> CalculationParams:
    """Resolve settings into calculation parameters.

    Args:
        settings: Current settings snapshot, or None for defaults
        reference: Loaded energy reference (supplies the default grid)

    Returns:
        CalculationParams with mode, multiplier and grid intensity filled in
    """
    settings = settings or Settings()
    grid = settings.grid_intensity
    if grid is None or grid <= 0:
        grid = reference.grid_co2_g_per_kwh
    mode = settings.mode or DEFAULT_MODE
    return CalculationParams(
        mode=mode,
        multiplier=mode_multiplier(mode),
        grid_intensity=grid,
    )


def describe_mode(settings: Optional[Settings], reference: EnergyReference) -> str:
    """Human-readable label for the active mode, e.g. for detail views."""
    params = resolve_parameters(settings, reference)
    wh = reference.modalities.wh_per_1k_tokens * params.multiplier
    label = params.mode if params.mode in MODE_MULTIPLIERS else DEFAULT_MODE
    return f"{label.capitalize()} model ({wh:g} Wh / 1k tokens)"


def is_greener(previous: Optional[Settings], current: Optional[Settings]) -> bool:
    """True when a settings change lowered the energy multiplier."""
    before = mode_multiplier(previous.mode if previous else None)
    after = mode_multiplier(current.mode if current else None)
    return after < before
