"""
Token and unit estimation.

Turns observed content into the modality-specific unit count the
impact calculator works with: tokens for text, images for image
responses, minutes for audio.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

from .modality import Modality, NO_HINTS, StructuralHints

# Tokens per word for typical English output
TOKENS_PER_WORD = 1.3
CHARS_PER_TOKEN = 4
CHARS_PER_AUDIO_MINUTE = 900
WORDS_PER_SPOKEN_MINUTE = 150

_WORD = re.compile(r"\b[\w'-]+\b")
_WHITESPACE = re.compile(r"\s+")
_MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s?(?:min|minute)", re.IGNORECASE)
_IMAGE_COUNT = re.compile(r"(\d+)\s?(?:images|pictures|renders|variations)", re.IGNORECASE)


@dataclass(frozen=True)
class UnitEstimate:
    """Unit count for one piece of content.

    ``units`` is what gets priced; ``tokens`` is tracked separately
    and stays zero for image and audio content.
    """
    units: float
    tokens: int


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a piece of text.

    Averages a word-count heuristic with a character-density heuristic.
    Word counts alone overshoot on dense technical text and character
    density alone undershoots on short punctuation-heavy text.

    Args:
        text: Text to measure

    Returns:
        Estimated tokens; 0 for empty or whitespace-only text, else at least 1
    """
    if not text or not text.strip():
        return 0
    word_estimate = len(_WORD.findall(text)) * TOKENS_PER_WORD
    char_estimate = len(_WHITESPACE.sub("", text)) / CHARS_PER_TOKEN
    return max(1, round((word_estimate + char_estimate) / 2))


def parse_minutes(text: str) -> Optional[float]:
    """Extract a duration such as "12 min" or "3.5 minutes" from text."""
    match = _MINUTES.search(text or "")
    return float(match.group(1)) if match else None


def estimate_units(
    modality: Modality,
    text: str,
    hints: StructuralHints = NO_HINTS,
    duration_minutes: Optional[float] = None,
) -> UnitEstimate:
    """Estimate the unit count for content of a known modality.

    Args:
        modality: Modality chosen by the classifier
        text: Extracted text of the content
        hints: Structural media hints (image count is used for images)
        duration_minutes: Explicit audio duration, if the observer knows it

    Returns:
        UnitEstimate with units >= 1 for every modality except UNKNOWN
    """
    text = text or ""

    if modality == Modality.IMAGE:
        return UnitEstimate(units=max(1, hints.image_count), tokens=0)

    if modality == Modality.AUDIO:
        if duration_minutes is not None and duration_minutes > 0:
            minutes = duration_minutes
        else:
            minutes = parse_minutes(text)
            if minutes is None:
                minutes = math.ceil(len(text) / CHARS_PER_AUDIO_MINUTE)
        return UnitEstimate(units=max(1, minutes), tokens=0)

    if modality in (Modality.TEXT, Modality.PDF):
        tokens = estimate_tokens(text)
        units = tokens or math.ceil(len(text) / CHARS_PER_TOKEN)
        return UnitEstimate(units=max(1, units), tokens=tokens)

    return UnitEstimate(units=0, tokens=0)


def estimate_prompt_units(modality: Modality, text: str) -> UnitEstimate:
    """Estimate units for a draft prompt, before any response exists.

    Image prompts are priced by the number of images asked for and audio
    prompts by the requested length or a speaking-rate guess.
    """
    text = text or ""

    if modality == Modality.IMAGE:
        match = _IMAGE_COUNT.search(text)
        count = int(match.group(1)) if match else 1
        return UnitEstimate(units=max(1, count), tokens=0)

    if modality == Modality.AUDIO:
        minutes = parse_minutes(text)
        if minutes is None:
            words = len(text.split())
            minutes = max(1, math.ceil(words / WORDS_PER_SPOKEN_MINUTE))
        return UnitEstimate(units=minutes, tokens=0)

    tokens = estimate_tokens(text)
    return UnitEstimate(units=tokens, tokens=tokens)
