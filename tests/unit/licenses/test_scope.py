"""
Unit tests for license usage scope value objects.
"""

import pytest

from licenses.domain.scope import (
    CutdownScope,
    GeographicScope,
    LicenseScope,
    MediaScope,
    PlacementScope,
)


class TestGeographicScope:
    """Tests for GeographicScope."""

    def test_codes_normalised(self):
        """Test codes are uppercased, trimmed and deduplicated."""
        assert GeographicScope((" us", "US", "ca")).territories == ("US", "CA")

    def test_global_cannot_combine(self):
        """Test GLOBAL with specific codes is rejected."""
        with pytest.raises(ValueError):
            GeographicScope(("GLOBAL", "US"))

    def test_empty_is_global(self):
        """Test an empty list is unrestricted."""
        assert GeographicScope().is_global
        assert GeographicScope(("global",)).is_global
        assert not GeographicScope(("FR",)).is_global

    def test_overlap(self):
        """Test overlap reports shared or concrete codes."""
        us_ca = GeographicScope(("US", "CA"))
        assert us_ca.overlap_with(GeographicScope(("CA", "MX"))) == ("CA",)
        assert us_ca.overlap_with(GeographicScope(("FR",))) == ()
        assert GeographicScope().overlap_with(us_ca) == ("US", "CA")
        assert GeographicScope().overlap_with(GeographicScope()) == ("GLOBAL",)


class TestLicenseScope:
    """Tests for LicenseScope."""

    def test_from_dict_defaults(self):
        """Test missing sections become empty or absent."""
        scope = LicenseScope.from_dict({})

        assert scope.media.selected() == frozenset()
        assert scope.placement.selected() == frozenset()
        assert scope.geographic is None
        assert scope.territories.is_global

    def test_to_dict_omits_absent_sections(self):
        """Test optional sections only appear when set."""
        data = LicenseScope.from_dict(
            {"media": {"digital": True}, "placement": {"email": True}, "geographic": {"territories": ["gb"]}}
        ).to_dict()

        assert set(data) == {"media", "placement", "geographic"}
        assert data["geographic"] == {"territories": ["GB"]}
        assert data["media"]["digital"] is True
        assert data["media"]["print"] is False

    def test_identical_usage(self):
        """Test identical usage compares selected media and placement only."""
        a = LicenseScope(media=MediaScope(digital=True), placement=PlacementScope(social=True))
        b = LicenseScope(
            media=MediaScope(digital=True),
            placement=PlacementScope(social=True),
            geographic=GeographicScope(("US",)),
        )
        c = LicenseScope(media=MediaScope(print=True), placement=PlacementScope(social=True))

        assert a.is_identical_usage(b)
        assert not a.is_identical_usage(c)

    def test_invalid_aspect_ratios(self):
        """Test unknown aspect ratios are reported."""
        cutdowns = CutdownScope(allow_edits=True, aspect_ratios=("16:9", "5:2", "1:1"))
        assert cutdowns.invalid_aspect_ratios() == ("5:2",)
