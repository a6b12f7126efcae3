"""
Energy reference table and its one-time loader.

Holds the static coefficients every impact calculation is based on.
"""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE_PATH = Path(__file__).resolve().parent.parent / "data" / "energy_reference.json"
DEFAULT_TIMEOUT_SECONDS = 10.0


class ReferenceUnavailable(Exception):
    """Raised when the energy reference cannot be loaded or parsed."""


@dataclass(frozen=True)
class ModalityCoefficients:
    """Energy coefficients per modality unit."""
    wh_per_1k_tokens: float  # text and pdf
    wh_per_image: float
    wh_per_min: float  # audio

    def __post_init__(self):
        """Validate coefficients are non-negative."""
        for name in ("wh_per_1k_tokens", "wh_per_image", "wh_per_min"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")


@dataclass(frozen=True)
class EnergyReference:
    """Static coefficient table loaded once per process."""
    grid_co2_g_per_kwh: float
    water_l_per_kwh: float
    modalities: ModalityCoefficients

    def __post_init__(self):
        """Validate grid and water factors."""
        if self.grid_co2_g_per_kwh <= 0:
            raise ValueError("grid_CO2_g_per_kWh must be > 0")
        if self.water_l_per_kwh < 0:
            raise ValueError("water_L_per_kWh cannot be negative")


def parse_reference(raw: Any) -> EnergyReference:
    """Build an EnergyReference from the decoded reference document.

    Args:
        raw: Decoded JSON document

    Returns:
        Validated EnergyReference

    Raises:
        ReferenceUnavailable: If the document does not have the expected shape
    """
    if not isinstance(raw, dict):
        raise ReferenceUnavailable("Energy reference must be a JSON object")

    try:
        modalities = raw["modalities"]
        return EnergyReference(
            grid_co2_g_per_kwh=_number(raw["grid_CO2_g_per_kWh"], "grid_CO2_g_per_kWh"),
            water_l_per_kwh=_number(raw["water_L_per_kWh"], "water_L_per_kWh"),
            modalities=ModalityCoefficients(
                wh_per_1k_tokens=_number(modalities["text"]["Wh_per_1k_tokens"], "text.Wh_per_1k_tokens"),
                wh_per_image=_number(modalities["image"]["Wh_per_image"], "image.Wh_per_image"),
                wh_per_min=_number(modalities["audio"]["Wh_per_min"], "audio.Wh_per_min"),
            ),
        )
    except (KeyError, TypeError) as e:
        raise ReferenceUnavailable(f"Energy reference is missing a required field: {e}") from e
    except ValueError as e:
        raise ReferenceUnavailable(f"Energy reference is invalid: {e}") from e


def _number(value: Any, field: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{field}' must be a number")
    if not math.isfinite(value):
        raise ValueError(f"'{field}' must be a finite number")
    return float(value)


class ReferenceLoader:
    """Memoized asynchronous loader for the energy reference.

    The first call to ``load`` starts the fetch; every caller, including
    those arriving while it is in flight, awaits the same task. A failed
    load stays failed for the lifetime of the loader.
    """

    def __init__(
        self,
        source: Union[str, Path, None] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.source = str(source) if source is not None else str(DEFAULT_REFERENCE_PATH)
        self.timeout = timeout
        self.transport = transport
        self._task: Optional["asyncio.Task[EnergyReference]"] = None

    async def load(self) -> EnergyReference:
        """Return the reference, fetching it on first use.

        Raises:
            ReferenceUnavailable: If the source is missing, unreachable or malformed
        """
        if self._task is None:
            self._task = asyncio.ensure_future(self._fetch())
        return await self._task

    async def _fetch(self) -> EnergyReference:
        if self.source.startswith(("http://", "https://")):
            raw = await self._fetch_url()
        else:
            raw = await asyncio.to_thread(self._read_file)
        reference = parse_reference(raw)
        logger.info("Loaded energy reference from %s", self.source)
        return reference

    async def _fetch_url(self) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.source)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise ReferenceUnavailable(f"Energy reference fetch failed ({self.source}): {e}") from e
        except ValueError as e:
            raise ReferenceUnavailable(f"Energy reference at {self.source} is not valid JSON") from e

    def _read_file(self) -> Dict[str, Any]:
        path = Path(self.source)
        if not path.exists():
            raise ReferenceUnavailable(f"Energy reference file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ReferenceUnavailable(f"Invalid JSON in energy reference {path}: {e}") from e
        except OSError as e:
            raise ReferenceUnavailable(f"Energy reference file unreadable: {path}: {e}") from e
