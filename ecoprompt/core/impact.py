"""
Impact calculations.

Converts unit counts into energy, carbon and water quantities using the
energy reference and the resolved operating mode.
"""

import math
from dataclasses import dataclass
from typing import Optional, Union

from .modality import Modality
from .modes import CalculationParams
from .reference import EnergyReference

WH_PER_KWH = 1000
ML_PER_L = 1000


@dataclass(frozen=True)
class ImpactPartial:
    """Impact of one piece of content, before it is dated and recorded."""
    modality: Modality
    units: float
    tokens: int
    energy_wh: float
    co2_g: float
    water_ml: float


def compute_energy_wh(
    modality: Modality,
    units: float,
    multiplier: float,
    reference: EnergyReference,
) -> Optional[float]:
    """Energy in watt-hours for a unit count, or None for unsupported modalities."""
    coefficients = reference.modalities
    if modality == Modality.IMAGE:
        return units * coefficients.wh_per_image * multiplier
    if modality == Modality.AUDIO:
        return units * coefficients.wh_per_min * multiplier
    if modality in (Modality.TEXT, Modality.PDF):
        # pdf shares the text coefficient
        return (units / 1000) * coefficients.wh_per_1k_tokens * multiplier
    return None


def compute_impact(
    modality: Union[Modality, str],
    units: Union[int, float, None],
    tokens: int,
    params: CalculationParams,
    reference: Optional[EnergyReference],
) -> Optional[ImpactPartial]:
    """Compute the physical impact of a unit count.

    A None result means the impact could not be estimated. Callers
    must not treat it as zero impact.

    Args:
        modality: Content modality (enum or its string value)
        units: Unit count in the modality's unit
        tokens: Token count carried through to the result
        params: Resolved mode multiplier and grid intensity
        reference: Loaded energy reference, or None if unavailable

    Returns:
        ImpactPartial with unrounded values, or None
    """
    if reference is None:
        return None
    if isinstance(units, bool) or not isinstance(units, (int, float)):
        return None
    if not math.isfinite(units) or units <= 0:
        return None

    try:
        modality = Modality(modality)
    except ValueError:
        return None

    energy_wh = compute_energy_wh(modality, units, params.multiplier, reference)
    if energy_wh is None:
        return None

    energy_kwh = energy_wh / WH_PER_KWH
    return ImpactPartial(
        modality=modality,
        units=units,
        tokens=tokens or 0,
        energy_wh=energy_wh,
        co2_g=energy_kwh * params.grid_intensity,
        water_ml=energy_kwh * reference.water_l_per_kwh * ML_PER_L,
    )
