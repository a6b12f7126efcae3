"""
Core modules for EcoPrompt.

This package contains the impact estimation engine: modality
classification, unit estimation, impact calculation, settings
resolution and the daily totals aggregator.
"""
