"""
Data models for the storage layer.

Defines the impact record and day-total structures and their stored
(JSON-compatible) shapes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from ecoprompt.core.modality import Modality


@dataclass(frozen=True)
class ImpactRecord:
    """Immutable record of one estimated piece of content.

    Records are appended to history and folded into their day's total
    exactly once. ``date`` is fixed at creation and never recomputed.
    """
    timestamp: datetime
    date: str
    modality: Modality
    units: float
    tokens: int
    energy_wh: float
    co2_g: float
    water_ml: float
    manual: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": int(self.timestamp.timestamp() * 1000),
            "date": self.date,
            "modality": self.modality.value,
            "units": self.units,
            "tokens": self.tokens,
            "energyWh": self.energy_wh,
            "co2g": self.co2_g,
            "waterMl": self.water_ml,
            "manual": self.manual,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImpactRecord":
        return cls(
            timestamp=datetime.fromtimestamp(data["timestamp"] / 1000),
            date=data["date"],
            modality=Modality(data.get("modality", Modality.TEXT.value)),
            units=data.get("units", 0),
            tokens=data.get("tokens") or 0,
            energy_wh=data.get("energyWh", 0.0),
            co2_g=data.get("co2g", 0.0),
            water_ml=data.get("waterMl", 0.0),
            manual=bool(data.get("manual", False)),
        )


@dataclass(frozen=True)
class DayTotals:
    """Running sums for one calendar day."""
    tokens: int = 0
    energy_wh: float = 0.0
    co2_g: float = 0.0
    water_ml: float = 0.0

    def plus(self, record: ImpactRecord) -> "DayTotals":
        """Return these totals with the record's impact added."""
        return DayTotals(
            tokens=self.tokens + (record.tokens or 0),
            energy_wh=self.energy_wh + record.energy_wh,
            co2_g=self.co2_g + record.co2_g,
            water_ml=self.water_ml + record.water_ml,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens": self.tokens,
            "energyWh": self.energy_wh,
            "co2g": self.co2_g,
            "waterMl": self.water_ml,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayTotals":
        return cls(
            tokens=data.get("tokens") or 0,
            energy_wh=data.get("energyWh") or 0.0,
            co2_g=data.get("co2g") or 0.0,
            water_ml=data.get("waterMl") or 0.0,
        )
