"""
SDK for EcoPrompt.

Provides programmatic footprint tracking for AI client libraries.
"""

from .openai_client import FootprintOpenAI

__all__ = ["FootprintOpenAI"]
