"""
Unit tests for display formatting.
"""

from ecoprompt.core.formatting import UNKNOWN_IMPACT_LABEL, format_impact, format_number
from ecoprompt.core.impact import ImpactPartial
from ecoprompt.core.modality import Modality


class TestFormatNumber:
    """Test quantity formatting."""

    def test_small_values_keep_precision(self):
        """Verify tiny values do not collapse to zero."""
        assert format_number(0.0005, 2) == "0.001"
        assert format_number(0.042) == "0.042"

    def test_regular_values(self):
        """Verify values use the requested digits."""
        assert format_number(1.234) == "1.23"
        assert format_number(3.0, 1) == "3.0"

    def test_whole_numbers_grouped(self):
        """Verify integer display uses thousands separators."""
        assert format_number(12345, 0) == "12,345"

    def test_missing_values(self):
        """Verify missing or invalid values render as zero."""
        assert format_number(None) == "0"
        assert format_number(0) == "0"
        assert format_number(float("nan")) == "0"


class TestFormatImpact:
    """Test the one-line impact label."""

    def test_known_impact(self):
        """Verify the label lists energy, carbon and water."""
        impact = ImpactPartial(
            modality=Modality.TEXT, units=2000, tokens=2000, energy_wh=1.0, co2_g=0.4, water_ml=1.8
        )
        assert format_impact(impact) == "Estimated impact: 1.00 Wh | 0.40 g CO2 | 1.8 mL water"

    def test_unknown_impact(self):
        """Verify None renders the unknown label."""
        assert format_impact(None) == UNKNOWN_IMPACT_LABEL
