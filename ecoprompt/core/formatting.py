"""
Display formatting for impact values.

Rounding happens here only; the calculator keeps full precision.
"""

from typing import Optional

from .impact import ImpactPartial

UNKNOWN_IMPACT_LABEL = "Impact unknown: unsupported content."


def format_number(value: Optional[float], digits: int = 2) -> str:
    """Format a quantity for display.

    Small non-zero values keep at least three decimals so they do not
    collapse to zero.
    """
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return "0"
    if value != value:  # NaN
        return "0"
    if digits == 0:
        return f"{round(value):,}"
    if value == 0:
        return "0"
    if value < 0.1:
        return f"{value:.{max(3, digits)}f}"
    return f"{value:.{digits}f}"


def format_impact(impact: Optional[ImpactPartial]) -> str:
    """One-line impact label, or the unknown-impact label for None."""
    if impact is None:
        return UNKNOWN_IMPACT_LABEL
    return (
        f"Estimated impact: {format_number(impact.energy_wh, 2)} Wh"
        f" | {format_number(impact.co2_g, 2)} g CO2"
        f" | {format_number(impact.water_ml, 1)} mL water"
    )
