"""
Unit tests for core value objects.
"""
import pytest

from core.domain.value_objects import (
    SYSTEM_ACTOR_ID,
    Actor,
    AssetStatus,
    LicenseStatus,
    LicenseType,
    Role,
)


class TestActor:
    """Tests for Actor value object."""

    def test_valid_actor(self):
        """Test valid actor creation."""
        actor = Actor(user_id="brand-owner-1", role=Role.BRAND)
        assert actor.user_id == "brand-owner-1"
        assert str(actor) == "brand:brand-owner-1"
        assert not actor.is_admin

    def test_empty_user_id(self):
        """Test an actor needs a user id."""
        with pytest.raises(ValueError, match="user id is required"):
            Actor(user_id="", role=Role.CREATOR)

    def test_role_must_be_enum(self):
        """Test raw strings are not accepted as roles."""
        with pytest.raises(ValueError, match="Invalid actor role"):
            Actor(user_id="someone", role="BRAND")

    def test_system_actor(self):
        """Test the scheduler actor."""
        actor = Actor.system()
        assert actor.user_id == SYSTEM_ACTOR_ID
        assert actor.is_system

    def test_equality(self):
        """Test actors compare by value."""
        assert Actor("admin-1", Role.ADMIN) == Actor("admin-1", Role.ADMIN)
        assert Actor("admin-1", Role.ADMIN) != Actor("admin-1", Role.BRAND)
        assert len({Actor("admin-1", Role.ADMIN), Actor("admin-1", Role.ADMIN)}) == 1


class TestLicenseStatus:
    """Tests for LicenseStatus enum."""

    def test_values(self):
        """Test the status values."""
        assert str(LicenseStatus.PENDING_APPROVAL) == "PENDING_APPROVAL"
        assert LicenseStatus("EXPIRING_SOON") is LicenseStatus.EXPIRING_SOON
        assert len(LicenseStatus) == 12

    def test_unknown_value(self):
        """Test unknown statuses are rejected."""
        with pytest.raises(ValueError):
            LicenseStatus("PAUSED")


class TestLicenseType:
    """Tests for LicenseType enum."""

    @pytest.mark.parametrize(
        "license_type, exclusive",
        [
            (LicenseType.EXCLUSIVE, True),
            (LicenseType.EXCLUSIVE_TERRITORY, True),
            (LicenseType.NON_EXCLUSIVE, False),
        ],
    )
    def test_is_exclusive(self, license_type, exclusive):
        """Test both exclusive tiers count as exclusive."""
        assert license_type.is_exclusive is exclusive


class TestAssetStatus:
    """Tests for AssetStatus enum."""

    def test_licensable(self):
        """Test only published or approved assets can be licensed."""
        assert AssetStatus.PUBLISHED.is_licensable
        assert AssetStatus.APPROVED.is_licensable
        assert not AssetStatus.DRAFT.is_licensable
        assert not AssetStatus.ARCHIVED.is_licensable
