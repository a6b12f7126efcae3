"""EcoPrompt: energy, carbon and water footprint estimates for AI content."""

__version__ = "0.1.0"
