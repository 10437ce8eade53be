"""
Pytest configuration and shared fixtures.
"""

import uuid
from datetime import timedelta

import pytest

from assets.domain.asset import Creator, IpAsset, Ownership
from brands.domain.brand import Brand
from core.domain.clock import utc_now
from core.domain.value_objects import Actor, LicenseStatus, LicenseType, OwnershipType, Role
from licenses.application.services.conflict_preview_service import ConflictPreviewService
from licenses.domain.license import License
from licenses.domain.policy import LicensingPolicy

from tests.fakes import (
    DictCache,
    InMemoryAmendmentRepository,
    InMemoryAssetRepository,
    InMemoryAuditLogRepository,
    InMemoryBrandRepository,
    InMemoryExtensionRepository,
    InMemoryIdempotencyRepository,
    InMemoryLicenseRepository,
    InMemoryStatusHistoryRepository,
    InMemoryUsageMetricsRepository,
    RecordingEventBus,
    make_scope,
    noop_atomic,
)

BRAND_OWNER = "brand-owner-1"
CREATOR_USER = "creator-1"
ADMIN_USER = "admin-1"


@pytest.fixture
def now():
    return utc_now()


@pytest.fixture
def policy():
    """Default licensing policy."""
    return LicensingPolicy()


@pytest.fixture
def scope():
    return make_scope()


@pytest.fixture
def sample_brand():
    """Fixture for a verified Brand entity."""
    return Brand.create(
        company_name="Acme Outdoor",
        owner_user_id=BRAND_OWNER,
        is_verified=True,
        verification_status="approved",
        total_spent_cents=0,
    )


@pytest.fixture
def sample_creator():
    return Creator(id=uuid.uuid4(), user_id=CREATOR_USER, display_name="Jo Lens")


@pytest.fixture
def sample_asset():
    """Fixture for a published photo."""
    return IpAsset.create(title="Sunrise over Ridge")


@pytest.fixture
def sample_ownership(sample_asset, sample_creator, now):
    """Sole PRIMARY ownership of the sample asset."""
    return Ownership(
        id=uuid.uuid4(),
        ip_asset_id=sample_asset.id,
        creator=sample_creator,
        share_bps=10000,
        ownership_type=OwnershipType.PRIMARY,
        start_date=now - timedelta(days=365),
        legal_doc_url="https://docs.example.com/ownership.pdf",
    )


@pytest.fixture
def brand_actor():
    return Actor(user_id=BRAND_OWNER, role=Role.BRAND)


@pytest.fixture
def creator_actor():
    return Actor(user_id=CREATOR_USER, role=Role.CREATOR)


@pytest.fixture
def admin_actor():
    return Actor(user_id=ADMIN_USER, role=Role.ADMIN)


@pytest.fixture
def brand_repository(sample_brand):
    """Fixture for BrandRepository holding the sample brand."""
    return InMemoryBrandRepository(sample_brand)


@pytest.fixture
def asset_repository(sample_asset, sample_ownership):
    """Fixture for AssetRepository holding the sample asset and its owner."""
    repository = InMemoryAssetRepository()
    repository.add(sample_asset, sample_ownership)
    return repository


@pytest.fixture
def license_repository():
    """Fixture for LicenseRepository."""
    return InMemoryLicenseRepository()


@pytest.fixture
def history_repository():
    return InMemoryStatusHistoryRepository()


@pytest.fixture
def audit_repository():
    return InMemoryAuditLogRepository()


@pytest.fixture
def amendment_repository():
    return InMemoryAmendmentRepository()


@pytest.fixture
def extension_repository():
    return InMemoryExtensionRepository()


@pytest.fixture
def idempotency_repository():
    return InMemoryIdempotencyRepository()


@pytest.fixture
def usage_repository():
    return InMemoryUsageMetricsRepository()


@pytest.fixture
def event_bus():
    """Event bus that records what handlers publish."""
    return RecordingEventBus()


@pytest.fixture
def cache():
    return DictCache()


@pytest.fixture
def preview_service(license_repository, cache):
    return ConflictPreviewService(license_repository, cache=cache)


@pytest.fixture
def atomic():
    """Transaction stand-in for handlers running against in-memory repositories."""
    return noop_atomic


@pytest.fixture
def make_license(license_repository, sample_brand, sample_asset, scope, now):
    """
    Factory storing a license in the in-memory repository.

    Dates default to a 180-day grant that started 10 days ago.
    """

    def factory(
        status=LicenseStatus.ACTIVE,
        license_type=LicenseType.NON_EXCLUSIVE,
        start_date=None,
        end_date=None,
        fee_cents=100000,
        rev_share_bps=0,
        license_scope=None,
        brand_id=None,
        ip_asset_id=None,
        **kwargs,
    ):
        start = start_date or now - timedelta(days=10)
        license = License.create(
            ip_asset_id=ip_asset_id or sample_asset.id,
            brand_id=brand_id or sample_brand.id,
            license_type=license_type,
            start_date=start,
            end_date=end_date or start + timedelta(days=180),
            fee_cents=fee_cents,
            rev_share_bps=rev_share_bps,
            scope=license_scope or scope,
            status=status,
            created_by=BRAND_OWNER,
            **kwargs,
        )
        license_repository.items[license.id] = license
        return license

    return factory


@pytest.fixture
def api_client():
    """Fixture for DRF API client."""
    from rest_framework.test import APIClient

    return APIClient()
