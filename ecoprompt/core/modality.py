"""
Modality classification for observed AI content.

Two classifiers live here:

1. ``classify`` - ordered rule table for finished responses. The first
   matching rule wins, since the raw signals overlap (an image response
   often also mentions a "report").
2. ``classify_intent`` - keyword vote for draft prompts that are still
   being typed, followed by the same strong-keyword overrides.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple


class Modality(Enum):
    """Category of AI-generated content."""
    TEXT = "text"
    PDF = "pdf"
    IMAGE = "image"
    AUDIO = "audio"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StructuralHints:
    """Media facts extracted from the content by the observer."""
    has_image_media: bool = False
    has_audio_media: bool = False
    image_count: int = 0

    def __post_init__(self):
        """Validate image count."""
        if self.image_count < 0:
            raise ValueError("image_count cannot be negative")


NO_HINTS = StructuralHints()

IMAGE_KEYWORDS = re.compile(
    r"\b(image|images|draw|photo|render|picture|diffusion|dalle|dream|visual)\b",
    re.IGNORECASE,
)
AUDIO_KEYWORDS = re.compile(r"\b(transcribe|audio|recording|speech)\b", re.IGNORECASE)
DOCUMENT_KEYWORDS = re.compile(r"\b(pdf|document|report|paper)\b", re.IGNORECASE)
MARKDOWN_IMAGE = re.compile(r"!\[.*\]\(.+\)")

# Drafts also count podcasts as audio intent
PREVIEW_AUDIO_KEYWORDS = re.compile(
    r"\b(transcribe|audio|recording|speech|podcast)\b", re.IGNORECASE
)

Rule = Tuple[str, Callable[[str, StructuralHints], bool], Modality]


def _has_image_signal(text: str, hints: StructuralHints) -> bool:
    return (
        hints.has_image_media
        or bool(MARKDOWN_IMAGE.search(text))
        or bool(IMAGE_KEYWORDS.search(text))
    )


def _has_audio_signal(text: str, hints: StructuralHints) -> bool:
    return hints.has_audio_media or bool(AUDIO_KEYWORDS.search(text))


def _has_document_signal(text: str, hints: StructuralHints) -> bool:
    return bool(DOCUMENT_KEYWORDS.search(text))


def _is_blank(text: str, hints: StructuralHints) -> bool:
    return not text.strip()


# Ordered precedence; first match wins
CLASSIFICATION_RULES: List[Rule] = [
    ("image", _has_image_signal, Modality.IMAGE),
    ("audio", _has_audio_signal, Modality.AUDIO),
    ("document", _has_document_signal, Modality.PDF),
    ("blank", _is_blank, Modality.UNKNOWN),
]


def classify(text: str, hints: StructuralHints = NO_HINTS) -> Modality:
    """Classify observed content into a modality.

    Args:
        text: Extracted text of the content (may be empty)
        hints: Structural media hints found alongside the text

    Returns:
        The modality of the first matching rule, or TEXT if none match
    """
    text = text or ""
    for _name, predicate, modality in CLASSIFICATION_RULES:
        if predicate(text, hints):
            return modality
    return Modality.TEXT


# Indicator vectors in (text, image, audio) order
INTENT_LABELS: Tuple[Modality, ...] = (Modality.TEXT, Modality.IMAGE, Modality.AUDIO)
INTENT_VECTORS: Dict[str, Tuple[int, int, int]] = {
    "summarize": (1, 0, 0),
    "summary": (1, 0, 0),
    "essay": (1, 0, 0),
    "paragraph": (1, 0, 0),
    "outline": (1, 0, 0),
    "report": (1, 0, 0),
    "draw": (0, 1, 0),
    "image": (0, 1, 0),
    "images": (0, 1, 0),
    "illustration": (0, 1, 0),
    "render": (0, 1, 0),
    "picture": (0, 1, 0),
    "dalle": (0, 1, 0),
    "diffusion": (0, 1, 0),
    "photo": (0, 1, 0),
    "sketch": (0, 1, 0),
    "concept": (0, 1, 0),
    "mosaic": (0, 1, 0),
    "audio": (0, 0, 1),
    "speech": (0, 0, 1),
    "podcast": (0, 0, 1),
    "transcribe": (0, 0, 1),
    "transcription": (0, 0, 1),
    "voice": (0, 0, 1),
    "minutes": (0, 0, 1),
}

_WORD = re.compile(r"\b[\w'-]+\b")


def intent_scores(text: str) -> Tuple[int, int, int]:
    """Sum the indicator vectors of every recognised word in the draft."""
    scores = [0, 0, 0]
    for word in _WORD.findall((text or "").lower()):
        vector = INTENT_VECTORS.get(word)
        if vector is None:
            continue
        for idx, value in enumerate(vector):
            scores[idx] += value
    return scores[0], scores[1], scores[2]


def classify_intent(text: str) -> Modality:
    """Guess the modality a draft prompt is asking for.

    The highest vote wins, with ties going to the earlier label in
    (text, image, audio). Explicit image and audio keywords then
    override the vote, audio last.
    """
    modality = Modality.TEXT
    best = 0
    for label, score in zip(INTENT_LABELS, intent_scores(text)):
        if score > best:
            best = score
            modality = label

    text = text or ""
    if IMAGE_KEYWORDS.search(text):
        modality = Modality.IMAGE
    if PREVIEW_AUDIO_KEYWORDS.search(text):
        modality = Modality.AUDIO
    return modality
