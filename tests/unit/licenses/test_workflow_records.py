"""
Unit tests for amendments, extensions, idempotency records and signatures.
"""

import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from core.domain.clock import utc_now
from core.domain.value_objects import Role
from licenses.domain.amendment import (
    Amendment,
    AmendmentStatus,
    AmendmentType,
    ApprovalStatus,
    FieldChange,
    field_from_json,
    field_to_json,
)
from licenses.domain.extension import Extension, ExtensionStatus, prorated_fee
from licenses.domain.idempotency import IdempotencyRecord, IdempotencyStatus
from licenses.domain.metadata import SignatureRecord
from licenses.domain.scope import LicenseScope
from licenses.domain.signatures import signature_proof, verify_proof


def _amendment(approvers=(("creator-1", Role.CREATOR), ("creator-2", Role.CREATOR))):
    return Amendment.propose(
        license_id=uuid.uuid4(),
        amendment_number=1,
        proposed_by="brand-owner-1",
        proposed_by_role=Role.BRAND,
        amendment_type=AmendmentType.FINANCIAL,
        justification="Budget revised",
        changes=[FieldChange("fee_cents", 100000, 120000)],
        approvers=list(approvers),
        approval_deadline=utc_now() + timedelta(days=14),
    )


class TestAmendment:
    """Tests for Amendment."""

    def test_propose(self):
        """Test a proposal starts with one pending approval per approver."""
        amendment = _amendment(
            approvers=[("creator-1", Role.CREATOR), ("creator-1", Role.CREATOR), ("admin-1", Role.ADMIN)]
        )

        assert amendment.status == AmendmentStatus.PROPOSED
        assert amendment.remaining_approvals == 2
        assert amendment.fields_changed == ["fee_cents"]

    def test_requires_approver(self):
        """Test an amendment needs an approver."""
        with pytest.raises(ValueError):
            _amendment(approvers=[])

    def test_duplicate_fields_rejected(self):
        """Test a field may change once per amendment."""
        amendment = _amendment()
        with pytest.raises(ValueError):
            replace(amendment, changes=(FieldChange("fee_cents", 1, 2), FieldChange("fee_cents", 2, 3)))

    def test_unanimous_approval(self):
        """Test the amendment is approved once everyone approves."""
        amendment = _amendment()
        first = amendment.with_approval(amendment.approval_for("creator-1").decide(True))
        assert first.status == AmendmentStatus.PROPOSED
        assert first.remaining_approvals == 1

        second = first.with_approval(first.approval_for("creator-2").decide(True))
        assert second.status == AmendmentStatus.APPROVED
        assert second.decided_at is not None

    def test_any_rejection_rejects(self):
        """Test one rejection rejects the amendment."""
        amendment = _amendment()
        rejected = amendment.with_approval(
            amendment.approval_for("creator-2").decide(False, "Too low")
        )

        assert rejected.status == AmendmentStatus.REJECTED
        assert rejected.rejection_reason == "Too low"

    def test_decide_twice(self):
        """Test an approver decides once."""
        record = _amendment().approval_for("creator-1").decide(True)
        assert record.status == ApprovalStatus.APPROVED
        with pytest.raises(ValueError):
            record.decide(False)

    def test_expire(self):
        """Test expiry rejects with reason 'expired'."""
        amendment = _amendment()
        assert not amendment.is_overdue(utc_now())
        assert amendment.is_overdue(amendment.approval_deadline + timedelta(seconds=1))

        expired = amendment.expire()
        assert expired.status == AmendmentStatus.REJECTED
        assert expired.rejection_reason == "expired"


class TestAmendmentFieldCodec:
    """Tests for field_from_json and field_to_json."""

    def test_end_date_round_trip(self):
        """Test end dates are exchanged as ISO strings with a timezone."""
        value = datetime(2027, 1, 1, tzinfo=timezone.utc)
        assert field_from_json("end_date", field_to_json("end_date", value)) == value

    def test_naive_end_date_rejected(self):
        """Test end dates without a timezone are rejected."""
        with pytest.raises(ValueError):
            field_from_json("end_date", "2027-01-01T00:00:00")

    def test_scope_parsed(self):
        """Test scope values become LicenseScope."""
        scope = field_from_json("scope", {"media": {"ooh": True}})
        assert isinstance(scope, LicenseScope)
        assert scope.media.ooh is True

    @pytest.mark.parametrize(
        "field_name,value",
        [("fee_cents", "100"), ("fee_cents", True), ("payment_terms", 30), ("brand_id", "x"), ("scope", [])],
    )
    def test_invalid_values(self, field_name, value):
        """Test malformed or unknown fields are rejected."""
        with pytest.raises(ValueError):
            field_from_json(field_name, value)


class TestExtension:
    """Tests for Extension."""

    def _request(self, days=30):
        return Extension.request(
            license_id=uuid.uuid4(),
            requested_by="brand-owner-1",
            original_end_date=datetime(2026, 6, 30, tzinfo=timezone.utc),
            extension_days=days,
            additional_fee_cents=prorated_fee(365000, 365, days),
            justification="Campaign extended",
            approval_required=True,
            respond_within_days=14,
        )

    def test_request(self):
        """Test a request computes the new end date and deadline."""
        extension = self._request()

        assert extension.status == ExtensionStatus.PENDING
        assert extension.new_end_date == datetime(2026, 7, 30, tzinfo=timezone.utc)
        assert extension.additional_fee_cents == 30000
        assert extension.respond_by - extension.requested_at == timedelta(days=14)

    def test_zero_days_rejected(self):
        """Test extensions are at least one day."""
        with pytest.raises(ValueError):
            self._request(days=0)

    def test_approve(self):
        """Test approval records the approver."""
        approved = self._request().approve("creator-1")
        assert approved.status == ExtensionStatus.APPROVED
        assert approved.approved_by == "creator-1"
        with pytest.raises(ValueError):
            approved.reject("creator-1")

    def test_reject_default_reason(self):
        """Test rejection without a reason uses the default."""
        rejected = self._request().reject("creator-1")
        assert rejected.rejection_reason == "No reason provided"

    @pytest.mark.parametrize(
        "fee,duration,days,expected",
        [(365000, 365, 30, 30000), (100000, 3, 1, 33333), (100000, 0, 2, 200000), (99999, 2, 1, 50000)],
    )
    def test_prorated_fee(self, fee, duration, days, expected):
        """Test the daily rate is rounded half up."""
        assert prorated_fee(fee, duration, days) == expected


class TestIdempotencyRecord:
    """Tests for IdempotencyRecord."""

    def test_start(self):
        """Test a new record is processing and expires after the TTL."""
        record = IdempotencyRecord.start("key-1", "brand-owner-1", "create_license", ttl_hours=24)

        assert record.status == IdempotencyStatus.PROCESSING
        assert record.expires_at - record.created_at == timedelta(hours=24)
        assert not record.is_expired(utc_now())

    def test_empty_key_rejected(self):
        """Test keys cannot be blank."""
        with pytest.raises(ValueError):
            IdempotencyRecord.start("  ", "a", "op", 24)

    def test_stale_only_while_processing(self):
        """Test staleness applies to unfinished records."""
        record = IdempotencyRecord.start("key-1", "a", "op", 24)
        later = record.updated_at + timedelta(seconds=301)

        assert record.is_stale(later, 300)
        assert not record.processed({"ok": True}).is_stale(later + timedelta(days=1), 300)


class TestSignatureProof:
    """Tests for the signature proof."""

    def _signatures(self, terms_hash):
        at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        return [
            SignatureRecord(user_id="brand-owner-1", role=Role.BRAND, signed_at=at, terms_hash=terms_hash),
            SignatureRecord(user_id="creator-1", role=Role.CREATOR, signed_at=at, terms_hash=terms_hash),
        ]

    def test_order_independent(self):
        """Test the proof does not depend on signing order."""
        signatures = self._signatures("abc")
        assert signature_proof("abc", signatures) == signature_proof("abc", list(reversed(signatures)))

    def test_verify(self):
        """Test verification fails once the terms change."""
        signatures = self._signatures("abc")
        proof = signature_proof("abc", signatures)

        assert verify_proof(proof, "abc", signatures)
        assert not verify_proof(proof, "def", signatures)
        assert not verify_proof(None, "abc", signatures)
        assert not verify_proof(proof, "abc", [])
