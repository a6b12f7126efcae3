"""
Export of daily totals.

Serializes already-aggregated day totals as JSON or CSV, oldest day first.
"""

import csv
import io
import json
from typing import Any, Dict, List

from ecoprompt.core.totals import DailyTotals

CSV_HEADER = ["date", "total_tokens", "total_Wh", "total_CO2_g", "total_water_mL"]
EXPORT_FORMATS = ("json", "csv")


def build_dataset(totals: DailyTotals) -> List[Dict[str, Any]]:
    """Flatten totals into rows sorted by date ascending."""
    return [
        {
            "date": date,
            "tokens": day.tokens,
            "energyWh": day.energy_wh,
            "co2g": day.co2_g,
            "waterMl": day.water_ml,
        }
        for date, day in sorted(totals.items())
    ]


def to_json(totals: DailyTotals) -> str:
    return json.dumps(build_dataset(totals), indent=2)


def to_csv(totals: DailyTotals) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in build_dataset(totals):
        writer.writerow([row["date"], row["tokens"], row["energyWh"], row["co2g"], row["waterMl"]])
    return buffer.getvalue().rstrip("\n")


def export_totals(totals: DailyTotals, fmt: str) -> str:
    """Serialize totals in the given format.

    Raises:
        ValueError: If the format is not supported
    """
    fmt = fmt.lower()
    if fmt == "json":
        return to_json(totals)
    if fmt == "csv":
        return to_csv(totals)
    raise ValueError(f"Unsupported export format: {fmt} (expected one of {EXPORT_FORMATS})")
