"""
Serializers for the licensing API endpoints.
"""

from rest_framework import serializers

from core.domain.value_objects import AssetType, LicenseStatus, LicenseType
from licenses.application.commands.approve_license import ApprovalAction
from licenses.domain.amendment import AmendmentType
from licenses.domain.renewal import RenewalStrategy
from licenses.domain.scope import LicenseScope


def _values(enum):
    return [member.value for member in enum]


class _GrantSerializer(serializers.Serializer):
    """Fields shared by every request describing a grant on an asset."""

    ip_asset_id = serializers.UUIDField(required=True)
    license_type = serializers.ChoiceField(choices=_values(LicenseType))
    start_date = serializers.DateTimeField(required=True)
    end_date = serializers.DateTimeField(required=True)
    scope = serializers.JSONField(required=False, default=dict)

    def validate_license_type(self, value):
        return LicenseType(value)

    def validate_scope(self, value):
        """Parse the scope document into a LicenseScope."""
        if not isinstance(value, dict):
            raise serializers.ValidationError("Scope must be an object")
        try:
            return LicenseScope.from_dict(value)
        except (TypeError, ValueError) as e:
            raise serializers.ValidationError(str(e))


class LicenseTermsRequestSerializer(_GrantSerializer):
    """Serializer for create license request."""

    brand_id = serializers.UUIDField(required=True)
    project_id = serializers.UUIDField(required=False, allow_null=True)
    fee_cents = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    rev_share_bps = serializers.IntegerField(required=False, default=0, min_value=0, max_value=10000)
    auto_renew = serializers.BooleanField(required=False, default=False)
    payment_terms = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=255)
    billing_frequency = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=50)


class ValidateLicenseRequestSerializer(LicenseTermsRequestSerializer):
    """Serializer for dry-run validation request."""

    collect_all = serializers.BooleanField(required=False, default=True)
    exclude_license_id = serializers.UUIDField(required=False, allow_null=True)


class FeeQuoteRequestSerializer(_GrantSerializer):
    """Serializer for fee quote request."""

    brand_id = serializers.UUIDField(required=True)
    asset_type = serializers.ChoiceField(choices=_values(AssetType), required=False, allow_null=True)
    rev_share_bps = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=10000)
    projected_revenue_cents = serializers.IntegerField(required=False, allow_null=True, min_value=0)

    def validate_asset_type(self, value):
        return AssetType(value) if value else None


class ConflictCheckRequestSerializer(_GrantSerializer):
    """Serializer for conflict check request."""

    brand_id = serializers.UUIDField(required=False, allow_null=True)
    rev_share_bps = serializers.IntegerField(required=False, default=0, min_value=0, max_value=10000)
    exclude_license_id = serializers.UUIDField(required=False, allow_null=True)


class LicenseFilterSerializer(serializers.Serializer):
    """Query parameters of the license list."""

    brand_id = serializers.UUIDField(required=False)
    ip_asset_id = serializers.UUIDField(required=False)
    status = serializers.ChoiceField(choices=_values(LicenseStatus), required=False)

    def validate_status(self, value):
        return LicenseStatus(value)


class BrandFilterSerializer(serializers.Serializer):
    """Optional brand narrowing of aggregate endpoints."""

    brand_id = serializers.UUIDField(required=False)


class TransitionRequestSerializer(serializers.Serializer):
    """Serializer for status transition request."""

    to_status = serializers.ChoiceField(choices=_values(LicenseStatus))
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate_to_status(self, value):
        return LicenseStatus(value)


class TerminateRequestSerializer(serializers.Serializer):
    """Serializer for terminate request."""

    reason = serializers.CharField(required=True, max_length=1000)


class ApprovalActionRequestSerializer(serializers.Serializer):
    """Serializer for a license approval decision."""

    action = serializers.ChoiceField(choices=_values(ApprovalAction))
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)

    def validate_action(self, value):
        return ApprovalAction(value)


class ProposeAmendmentRequestSerializer(serializers.Serializer):
    """Serializer for amendment proposal."""

    amendment_type = serializers.ChoiceField(choices=_values(AmendmentType))
    justification = serializers.CharField(required=True, max_length=2000)
    changes = serializers.DictField(required=True, allow_empty=False)

    def validate_amendment_type(self, value):
        return AmendmentType(value)


class AmendmentDecisionRequestSerializer(serializers.Serializer):
    """Serializer for an amendment approval decision."""

    approve = serializers.BooleanField(required=True)
    comments = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class ExtensionRequestSerializer(serializers.Serializer):
    """Serializer for extension request."""

    extension_days = serializers.IntegerField(required=True)
    justification = serializers.CharField(required=False, allow_blank=True, default="", max_length=2000)


class ExtensionDecisionRequestSerializer(serializers.Serializer):
    """Serializer for an extension approval decision."""

    approve = serializers.BooleanField(required=True)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate(self, attrs):
        if not attrs["approve"] and not attrs.get("rejection_reason"):
            raise serializers.ValidationError({"rejection_reason": "Required when rejecting"})
        return attrs


class RenewalOfferRequestSerializer(serializers.Serializer):
    """Serializer for renewal offer generation."""

    strategy = serializers.ChoiceField(
        choices=_values(RenewalStrategy), required=False, default=RenewalStrategy.AUTOMATIC.value
    )
    negotiated_percent = serializers.FloatField(required=False, allow_null=True)

    def validate_strategy(self, value):
        return RenewalStrategy(value)

    def validate(self, attrs):
        if attrs["strategy"] == RenewalStrategy.NEGOTIATED and attrs.get("negotiated_percent") is None:
            raise serializers.ValidationError({"negotiated_percent": "Required for negotiated renewals"})
        return attrs


class AcceptRenewalOfferRequestSerializer(serializers.Serializer):
    """Serializer for accepting a renewal offer."""

    offer_id = serializers.CharField(required=True, max_length=64)


class LicenseSerializer(serializers.Serializer):
    """Serializer for LicenseDTO."""

    id = serializers.UUIDField()
    ip_asset_id = serializers.UUIDField()
    brand_id = serializers.UUIDField()
    project_id = serializers.UUIDField(allow_null=True)
    parent_license_id = serializers.UUIDField(allow_null=True)
    license_type = serializers.CharField()
    status = serializers.CharField()
    start_date = serializers.DateTimeField()
    end_date = serializers.DateTimeField()
    fee_cents = serializers.IntegerField()
    rev_share_bps = serializers.IntegerField()
    scope = serializers.JSONField()
    auto_renew = serializers.BooleanField()
    payment_terms = serializers.CharField(allow_null=True)
    billing_frequency = serializers.CharField(allow_null=True)
    signed_at = serializers.DateTimeField(allow_null=True)
    amendment_count = serializers.IntegerField()
    metadata = serializers.JSONField()
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CreateLicenseResponseSerializer(serializers.Serializer):
    """Serializer for create license response."""

    license = LicenseSerializer()
    warnings = serializers.ListField(child=serializers.CharField())
    approval = serializers.JSONField()
    fee_breakdown = serializers.JSONField(allow_null=True)


class FeeQuoteSerializer(serializers.Serializer):
    """Serializer for FeeQuoteDTO."""

    breakdown = serializers.JSONField()
    suggested_rev_share_bps = serializers.IntegerField()
    total_value = serializers.JSONField()


class StatusHistorySerializer(serializers.Serializer):
    """Serializer for StatusHistoryDTO."""

    id = serializers.UUIDField()
    license_id = serializers.UUIDField()
    from_status = serializers.CharField()
    to_status = serializers.CharField()
    transitioned_by = serializers.CharField()
    transitioned_at = serializers.DateTimeField()
    reason = serializers.CharField(allow_null=True)
    automated = serializers.BooleanField()


class ApprovalResultSerializer(serializers.Serializer):
    """Serializer for ApprovalResultDTO."""

    license = LicenseSerializer()
    action = serializers.CharField()
    outstanding = serializers.ListField(child=serializers.CharField())


class SignatureResultSerializer(serializers.Serializer):
    """Serializer for SignatureResultDTO."""

    license = LicenseSerializer()
    fully_executed = serializers.BooleanField()
    remaining_signers = serializers.ListField(child=serializers.CharField())


class SignatureVerificationSerializer(serializers.Serializer):
    """Serializer for SignatureVerificationDTO."""

    license_id = serializers.UUIDField()
    valid = serializers.BooleanField()
    terms_hash = serializers.CharField()
    signers = serializers.JSONField()
    signature_proof = serializers.CharField(allow_null=True)


class ApprovalRecordSerializer(serializers.Serializer):
    """Serializer for ApprovalRecordDTO."""

    id = serializers.UUIDField()
    approver_id = serializers.CharField()
    approver_role = serializers.CharField()
    status = serializers.CharField()
    comments = serializers.CharField(allow_null=True)
    decided_at = serializers.DateTimeField(allow_null=True)


class AmendmentSerializer(serializers.Serializer):
    """Serializer for AmendmentDTO."""

    id = serializers.UUIDField()
    license_id = serializers.UUIDField()
    amendment_number = serializers.IntegerField()
    amendment_type = serializers.CharField()
    status = serializers.CharField()
    proposed_by = serializers.CharField()
    proposed_by_role = serializers.CharField()
    justification = serializers.CharField()
    changes = serializers.JSONField()
    approval_deadline = serializers.DateTimeField()
    proposed_at = serializers.DateTimeField()
    decided_at = serializers.DateTimeField(allow_null=True)
    rejection_reason = serializers.CharField(allow_null=True)
    approvals = ApprovalRecordSerializer(many=True)


class AmendmentResultSerializer(serializers.Serializer):
    """Serializer for AmendmentResultDTO."""

    amendment = AmendmentSerializer()
    remaining_approvals = serializers.IntegerField()
    license = LicenseSerializer(allow_null=True)


class AmendmentHistoryItemSerializer(serializers.Serializer):
    """Serializer for AmendmentHistoryItemDTO."""

    amendment_id = serializers.UUIDField()
    amendment_number = serializers.IntegerField()
    field = serializers.CharField()
    before = serializers.JSONField(allow_null=True)
    after = serializers.JSONField(allow_null=True)
    decided_at = serializers.DateTimeField(allow_null=True)


class ExtensionSerializer(serializers.Serializer):
    """Serializer for ExtensionDTO."""

    id = serializers.UUIDField()
    license_id = serializers.UUIDField()
    requested_by = serializers.CharField()
    original_end_date = serializers.DateTimeField()
    new_end_date = serializers.DateTimeField()
    extension_days = serializers.IntegerField()
    additional_fee_cents = serializers.IntegerField()
    justification = serializers.CharField(allow_blank=True)
    approval_required = serializers.BooleanField()
    status = serializers.CharField()
    requested_at = serializers.DateTimeField()
    respond_by = serializers.DateTimeField()
    approved_by = serializers.CharField(allow_null=True)
    approved_at = serializers.DateTimeField(allow_null=True)
    rejected_by = serializers.CharField(allow_null=True)
    rejected_at = serializers.DateTimeField(allow_null=True)
    rejection_reason = serializers.CharField(allow_null=True)


class ExtensionResultSerializer(serializers.Serializer):
    """Serializer for ExtensionResultDTO."""

    extension = ExtensionSerializer()
    auto_approved = serializers.BooleanField()
    license = LicenseSerializer(allow_null=True)


class ExtensionAnalyticsSerializer(serializers.Serializer):
    """Serializer for ExtensionAnalyticsDTO."""

    total = serializers.IntegerField()
    approved = serializers.IntegerField()
    rejected = serializers.IntegerField()
    pending = serializers.IntegerField()
    average_extension_days = serializers.FloatField()
    total_additional_fees_cents = serializers.IntegerField()


class RenewalOfferResultSerializer(serializers.Serializer):
    """Serializer for RenewalOfferResultDTO."""

    license_id = serializers.UUIDField()
    offer_id = serializers.CharField()
    offer = serializers.JSONField()
    pricing = serializers.JSONField()
