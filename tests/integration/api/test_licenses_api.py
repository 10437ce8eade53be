"""
Integration tests for the licensing API.
"""

import uuid
from datetime import timedelta

import pytest
from asgiref.sync import async_to_sync
from django.urls import reverse
from django.utils import timezone

from assets.infrastructure.models import Creator as CreatorModel
from assets.infrastructure.models import IpAsset as IpAssetModel
from assets.infrastructure.models import IpOwnership
from brands.infrastructure.models import ApiKey
from brands.infrastructure.models import Brand as BrandModel
from core.domain.value_objects import LicenseStatus, LicenseType
from licenses.domain.license import License
from licenses.infrastructure import container
from tests.fakes import make_scope


@pytest.fixture
def brand():
    return BrandModel.objects.create(
        company_name="Acme Outdoor",
        owner_user_id="brand-owner-1",
        is_verified=True,
        verification_status="approved",
    )


@pytest.fixture
def asset():
    asset = IpAssetModel.objects.create(title="Sunrise", asset_type="PHOTO", status="PUBLISHED")
    creator = CreatorModel.objects.create(user_id="creator-1", display_name="Jo Lens")
    IpOwnership.objects.create(
        ip_asset=asset,
        creator=creator,
        share_bps=10000,
        start_date=timezone.now() - timedelta(days=365),
        legal_doc_url="https://docs.example.com/ownership.pdf",
    )
    return asset


def _raw_key(**fields):
    key = ApiKey(**fields)
    key.save()
    return key._raw_key


@pytest.fixture
def brand_key(brand):
    return _raw_key(user_id="brand-owner-1", role="BRAND", brand=brand)


@pytest.fixture
def creator_key():
    return _raw_key(user_id="creator-1", role="CREATOR")


@pytest.fixture
def admin_key():
    return _raw_key(user_id="admin-1", role="ADMIN")


@pytest.fixture
def terms(brand, asset):
    """Valid create payload for a 90-day non-exclusive grant starting tomorrow."""
    start = timezone.now() + timedelta(days=1)
    return {
        "ip_asset_id": str(asset.id),
        "brand_id": str(brand.id),
        "license_type": "NON_EXCLUSIVE",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(days=90)).isoformat(),
        "scope": {
            "media": {"digital": True},
            "placement": {"social": True},
            "geographic": {"territories": ["US"]},
        },
        "fee_cents": 100000,
    }


def _post(api_client, name, key, payload=None, **kwargs):
    url = reverse(f"licenses:{name}", kwargs=kwargs or None)
    return api_client.post(url, payload or {}, format="json", HTTP_X_API_KEY=key)


def _get(api_client, name, key, params=None, **kwargs):
    url = reverse(f"licenses:{name}", kwargs=kwargs or None)
    return api_client.get(url, params or {}, HTTP_X_API_KEY=key)


@pytest.mark.django_db
@pytest.mark.integration
class TestAuthentication:
    """Tests for API key authentication."""

    def test_missing_key(self, api_client):
        """Test requests without a key are rejected."""
        response = api_client.get(reverse("licenses:license-list"))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_unknown_key(self, api_client):
        """Test unknown keys are rejected."""
        response = api_client.get(reverse("licenses:license-list"), HTTP_X_API_KEY="not-a-key")
        assert response.status_code == 401

    def test_bearer_token(self, api_client, admin_key):
        """Test keys are also accepted as bearer tokens."""
        response = api_client.get(
            reverse("licenses:license-list"), HTTP_AUTHORIZATION=f"Bearer {admin_key}"
        )
        assert response.status_code == 200


@pytest.mark.django_db
@pytest.mark.integration
class TestCreateLicenseAPI:
    """Tests for POST /api/v1/licenses/."""

    def test_create(self, api_client, brand_key, terms):
        """Test a valid request creates a draft license."""
        response = _post(api_client, "license-list", brand_key, terms)

        assert response.status_code == 201
        body = response.json()
        assert body["license"]["status"] == "DRAFT"
        assert body["license"]["fee_cents"] == 100000
        assert body["license"]["scope"]["geographic"]["territories"] == ["US"]
        assert body["approval"]["requires_admin"] is False
        assert "Start date is in the past" not in body["warnings"]

    def test_invalid_payload(self, api_client, brand_key, terms):
        """Test serializer failures return VALIDATION_FAILED."""
        terms["license_type"] = "PERPETUAL"
        response = _post(api_client, "license-list", brand_key, terms)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_FAILED"
        assert "license_type" in response.json()["error"]["details"]

    def test_validation_failure(self, api_client, brand_key, terms):
        """Test failed business checks are reported with their errors."""
        terms["scope"]["placement"] = {}
        response = _post(api_client, "license-list", brand_key, terms)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        assert any("placement" in message for message in error["details"]["errors"])

    def test_creator_cannot_create(self, api_client, creator_key, terms):
        """Test only brands may request licenses."""
        response = _post(api_client, "license-list", creator_key, terms)
        assert response.status_code == 403

    def test_exclusive_conflict(self, api_client, brand_key, terms, brand, asset):
        """Test an overlapping exclusive grant blocks the request."""
        now = timezone.now()
        async_to_sync(container.license_repository.save)(
            License.create(
                ip_asset_id=asset.id,
                brand_id=brand.id,
                license_type=LicenseType.EXCLUSIVE,
                start_date=now - timedelta(days=10),
                end_date=now + timedelta(days=365),
                fee_cents=500000,
                rev_share_bps=0,
                scope=make_scope(),
                status=LicenseStatus.ACTIVE,
                created_by="brand-owner-1",
            )
        )

        response = _post(api_client, "license-list", brand_key, terms)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "LICENSE_CONFLICT"
        assert error["details"]["conflicts"][0]["reason"] == "EXCLUSIVE_OVERLAP"

    def test_idempotent_replay(self, api_client, brand_key, terms):
        """Test a retried request with the same key returns the first license."""
        url = reverse("licenses:license-list")
        headers = {"HTTP_X_API_KEY": brand_key, "HTTP_IDEMPOTENCY_KEY": "create-abc-1"}

        first = api_client.post(url, terms, format="json", **headers)
        second = api_client.post(url, terms, format="json", **headers)

        assert first.status_code == second.status_code == 201
        assert first.json()["license"]["id"] == second.json()["license"]["id"]
        listed = _get(api_client, "license-list", brand_key, {"brand_id": terms["brand_id"]})
        assert len(listed.json()) == 1


@pytest.mark.django_db
@pytest.mark.integration
class TestLicenseQueriesAPI:
    """Tests for license read endpoints."""

    def test_list_for_brand(self, api_client, brand_key, terms):
        """Test brands list the licenses of their own brand."""
        _post(api_client, "license-list", brand_key, terms)

        response = _get(api_client, "license-list", brand_key, {"brand_id": terms["brand_id"]})

        assert response.status_code == 200
        assert [item["status"] for item in response.json()] == ["DRAFT"]

    def test_creator_sees_own_asset(self, api_client, brand_key, creator_key, terms):
        """Test creators see licenses on assets they own."""
        created = _post(api_client, "license-list", brand_key, terms).json()["license"]

        response = _get(api_client, "license-detail", creator_key, license_id=created["id"])

        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_detail_not_found(self, api_client, admin_key):
        """Test unknown licenses return 404."""
        response = _get(api_client, "license-detail", admin_key, license_id=uuid.uuid4())
        assert response.status_code == 404

    def test_distribution_admin_only(self, api_client, brand_key, admin_key, terms):
        """Test the platform-wide distribution is restricted to admins."""
        _post(api_client, "license-list", brand_key, terms)

        assert _get(api_client, "status-distribution", brand_key).status_code == 403
        response = _get(api_client, "status-distribution", admin_key)
        assert response.status_code == 200
        assert response.json()["DRAFT"] == 1

    def test_fee_quote(self, api_client, brand_key, terms):
        """Test fee quotes return a breakdown and suggested revenue share."""
        terms.pop("fee_cents")
        response = _post(api_client, "fee-quote", brand_key, terms)

        assert response.status_code == 200
        body = response.json()
        assert body["breakdown"]["total_fee_cents"] > 0
        assert 0 <= body["suggested_rev_share_bps"] <= 10000

    def test_check_conflicts_clear(self, api_client, brand_key, terms):
        """Test an asset without grants reports no conflicts."""
        response = _post(api_client, "check-conflicts", brand_key, terms)

        assert response.status_code == 200
        assert response.json()["has_conflicts"] is False

    def test_validate_dry_run(self, api_client, brand_key, terms):
        """Test validation runs without persisting a license."""
        response = _post(api_client, "validate-license", brand_key, terms)

        assert response.status_code == 200
        assert response.json()["valid"] is True
        listed = _get(api_client, "license-list", brand_key, {"brand_id": terms["brand_id"]})
        assert listed.json() == []


@pytest.mark.django_db
@pytest.mark.integration
class TestLicenseLifecycleAPI:
    """Tests for driving a license from draft to active."""

    def test_submit_approve_sign(self, api_client, brand_key, creator_key, terms):
        """Test the full path from DRAFT through approval and signatures to ACTIVE."""
        license_id = _post(api_client, "license-list", brand_key, terms).json()["license"]["id"]

        submitted = _post(api_client, "submit-license", brand_key, license_id=license_id)
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "PENDING_APPROVAL"

        approved = _post(
            api_client, "license-approval", creator_key, {"action": "approve"}, license_id=license_id
        )
        assert approved.status_code == 200
        assert approved.json()["license"]["status"] == "PENDING_SIGNATURE"
        assert approved.json()["outstanding"] == []

        first = _post(api_client, "sign-license", brand_key, license_id=license_id)
        assert first.json()["fully_executed"] is False
        second = _post(api_client, "sign-license", creator_key, license_id=license_id)
        assert second.status_code == 200
        assert second.json()["fully_executed"] is True
        assert second.json()["license"]["status"] == "ACTIVE"

        history = _get(api_client, "license-history", brand_key, license_id=license_id).json()
        assert [entry["to_status"] for entry in history] == [
            "ACTIVE",
            "PENDING_SIGNATURE",
            "PENDING_APPROVAL",
        ]

    def test_submit_replay(self, api_client, brand_key, terms):
        """Test a retried submit with the same key replays the first response."""
        license_id = _post(api_client, "license-list", brand_key, terms).json()["license"]["id"]
        url = reverse("licenses:submit-license", kwargs={"license_id": license_id})
        headers = {"HTTP_X_API_KEY": brand_key, "HTTP_IDEMPOTENCY_KEY": "submit-abc-1"}

        first = api_client.post(url, {}, format="json", **headers)
        second = api_client.post(url, {}, format="json", **headers)
        unkeyed = _post(api_client, "submit-license", brand_key, license_id=license_id)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()
        assert unkeyed.status_code == 409

    def test_submit_conflicting_exclusive_draft(self, api_client, brand_key, terms):
        """Test the second of two overlapping exclusive drafts cannot be submitted."""
        exclusive = dict(terms, license_type="EXCLUSIVE")
        first_id = _post(api_client, "license-list", brand_key, exclusive).json()["license"]["id"]
        second_id = _post(api_client, "license-list", brand_key, exclusive).json()["license"]["id"]

        assert _post(api_client, "submit-license", brand_key, license_id=first_id).status_code == 200
        response = _post(api_client, "submit-license", brand_key, license_id=second_id)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "LICENSE_CONFLICT"
        detail = _get(api_client, "license-detail", brand_key, license_id=second_id)
        assert detail.json()["status"] == "DRAFT"

    def test_illegal_transition(self, api_client, brand_key, admin_key, terms):
        """Test edges outside the state machine return 409."""
        license_id = _post(api_client, "license-list", brand_key, terms).json()["license"]["id"]

        response = _post(
            api_client,
            "transition-license",
            admin_key,
            {"to_status": "EXPIRED", "reason": "cleanup"},
            license_id=license_id,
        )

        assert response.status_code == 409
        detail = _get(api_client, "license-detail", brand_key, license_id=license_id)
        assert detail.json()["status"] == "DRAFT"

    def test_terminate_requires_reason(self, api_client, brand_key, terms):
        """Test termination without a reason fails validation."""
        license_id = _post(api_client, "license-list", brand_key, terms).json()["license"]["id"]

        response = _post(api_client, "terminate-license", brand_key, {}, license_id=license_id)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_FAILED"
