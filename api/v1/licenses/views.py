"""
Licensing API views.

These endpoints are used by brand, creator and admin clients to:
- Validate, price and create licenses
- Drive licenses through approval, signature and termination
- Propose and decide amendments and extensions
- Check renewal eligibility and accept renewal offers
"""

import uuid
from typing import Any, Awaitable, Callable, Dict

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.licenses.serializers import (
    AcceptRenewalOfferRequestSerializer,
    AmendmentDecisionRequestSerializer,
    AmendmentHistoryItemSerializer,
    AmendmentResultSerializer,
    AmendmentSerializer,
    ApprovalActionRequestSerializer,
    ApprovalResultSerializer,
    BrandFilterSerializer,
    ConflictCheckRequestSerializer,
    CreateLicenseResponseSerializer,
    ExtensionAnalyticsSerializer,
    ExtensionDecisionRequestSerializer,
    ExtensionRequestSerializer,
    ExtensionResultSerializer,
    ExtensionSerializer,
    FeeQuoteRequestSerializer,
    FeeQuoteSerializer,
    LicenseFilterSerializer,
    LicenseSerializer,
    LicenseTermsRequestSerializer,
    ProposeAmendmentRequestSerializer,
    RenewalOfferRequestSerializer,
    RenewalOfferResultSerializer,
    SignatureResultSerializer,
    SignatureVerificationSerializer,
    StatusHistorySerializer,
    TerminateRequestSerializer,
    TransitionRequestSerializer,
    ValidateLicenseRequestSerializer,
)
from core.instrumentation import Status, StatusCode, get_tracer
from licenses.application.commands.amendments import (
    ProcessAmendmentApprovalCommand,
    ProposeAmendmentCommand,
)
from licenses.application.commands.approve_license import (
    ProcessLicenseApprovalCommand,
    SignLicenseCommand,
)
from licenses.application.commands.create_license import CreateLicenseCommand
from licenses.application.commands.extensions import (
    ProcessExtensionApprovalCommand,
    RequestExtensionCommand,
)
from licenses.application.commands.renewals import (
    AcceptRenewalOfferCommand,
    GenerateRenewalOfferCommand,
)
from licenses.application.commands.transition_status import (
    SubmitLicenseCommand,
    TerminateLicenseCommand,
    TransitionStatusCommand,
)
from licenses.application.handlers.amendment_handlers import (
    ProcessAmendmentApprovalHandler,
    ProposeAmendmentHandler,
)
from licenses.application.handlers.approval_handlers import (
    ProcessLicenseApprovalHandler,
    SignLicenseHandler,
    VerifySignatureHandler,
)
from licenses.application.handlers.conflict_handlers import (
    CheckConflictsHandler,
    GetConflictPreviewHandler,
)
from licenses.application.handlers.create_license_handler import (
    CalculateFeeHandler,
    CreateLicenseHandler,
    ValidateLicenseHandler,
)
from licenses.application.handlers.extension_handlers import (
    ProcessExtensionApprovalHandler,
    RequestExtensionHandler,
)
from licenses.application.handlers.query_handlers import (
    GetAmendmentHistoryHandler,
    GetAmendmentsHandler,
    GetExtensionAnalyticsHandler,
    GetExtensionsHandler,
    GetLicenseHandler,
    GetPendingAmendmentsHandler,
    GetPendingExtensionsHandler,
    GetStatusDistributionHandler,
    GetStatusHistoryHandler,
    ListLicensesHandler,
)
from licenses.application.handlers.renewal_handlers import (
    AcceptRenewalOfferHandler,
    CheckRenewalEligibilityHandler,
    GenerateRenewalOfferHandler,
)
from licenses.application.handlers.status_handlers import (
    SubmitLicenseHandler,
    TerminateLicenseHandler,
    TransitionStatusHandler,
)
from licenses.application.queries.conflict_queries import (
    CalculateFeeQuery,
    CheckConflictsQuery,
    GetConflictPreviewQuery,
    ValidateLicenseQuery,
)
from licenses.application.queries.license_queries import (
    GetLicenseQuery,
    GetStatusDistributionQuery,
    GetStatusHistoryQuery,
    ListLicensesQuery,
    VerifySignatureQuery,
)
from licenses.application.queries.workflow_queries import (
    CheckRenewalEligibilityQuery,
    GetAmendmentsQuery,
    GetExtensionAnalyticsQuery,
    GetExtensionsQuery,
    GetPendingAmendmentsQuery,
    GetPendingExtensionsQuery,
)
from licenses.application.services.idempotency_service import IdempotencyService
from licenses.application.services.policy import get_licensing_policy
from licenses.infrastructure import container

IDEMPOTENCY_HEADER = "Idempotency-Key"

tracer = get_tracer(__name__)

_ERROR_RESPONSES = {
    400: {"description": "Bad Request"},
    401: {"description": "Unauthorized - Missing or invalid API key"},
    403: {"description": "Forbidden - Actor may not perform this action"},
    404: {"description": "Not Found"},
}
_WRITE_RESPONSES = {**_ERROR_RESPONSES, 409: {"description": "Conflict or invalid status transition"}}

_IDEMPOTENCY_PARAMETER = OpenApiParameter(
    name=IDEMPOTENCY_HEADER,
    type=str,
    location=OpenApiParameter.HEADER,
    required=False,
    description="Replays the stored response when a request is retried with the same key",
)


def _invalid(span, serializer) -> Response:
    span.set_attribute("error", "validation_failed")
    span.set_attribute("error.details", str(serializer.errors))
    span.set_status(Status(StatusCode.ERROR, "Validation failed"))
    return Response(
        {
            "error": {
                "code": "VALIDATION_FAILED",
                "message": "Invalid request",
                "details": serializer.errors,
            }
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


async def _idempotent(
    request: Request, operation: str, func: Callable[[], Awaitable[Dict[str, Any]]]
) -> Dict[str, Any]:
    """Run a mutating call once per Idempotency-Key header, when one is sent."""
    key = request.headers.get(IDEMPOTENCY_HEADER)
    if not key:
        return await func()
    service = IdempotencyService(container.idempotency_repository, get_licensing_policy())
    return await service.run(key, request.actor.user_id, operation, func)


def _status_handler(handler_class):
    return handler_class(
        container.license_repository,
        container.history_repository,
        container.audit_repository,
        container.brand_repository,
        container.asset_repository,
        preview_service=container.preview_service(),
    )


def _amendment_handler(handler_class):
    return handler_class(
        container.license_repository,
        container.amendment_repository,
        container.audit_repository,
        container.brand_repository,
        container.asset_repository,
        policy=get_licensing_policy(),
        preview_service=container.preview_service(),
    )


def _extension_handler(handler_class):
    return handler_class(
        container.license_repository,
        container.extension_repository,
        container.history_repository,
        container.audit_repository,
        container.brand_repository,
        container.asset_repository,
        policy=get_licensing_policy(),
        preview_service=container.preview_service(),
    )


def _renewal_handler(handler_class):
    return handler_class(
        container.license_repository,
        container.asset_repository,
        container.brand_repository,
        container.usage_repository,
        container.audit_repository,
        policy=get_licensing_policy(),
        preview_service=container.preview_service(),
    )


class LicenseCollectionView(APIView):
    """View for creating and listing licenses."""

    @extend_schema(
        operation_id="create_license",
        summary="Create License",
        description=(
            "Validate the proposed terms, compute the fee when none is given and "
            "persist a DRAFT license. Conflicts with existing grants return 409 "
            "with the structured conflict list."
        ),
        tags=["Licenses"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=LicenseTermsRequestSerializer,
        responses={201: CreateLicenseResponseSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Create a DRAFT license."""
        return async_to_sync(self._handle_create_license)(request)

    async def _handle_create_license(self, request: Request) -> Response:
        """Async handler for create license."""
        with tracer.start_as_current_span("create_license") as span:
            span.set_attribute("operation", "create_license")

            serializer = LicenseTermsRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            span.set_attribute("ip_asset.id", str(data["ip_asset_id"]))
            span.set_attribute("brand.id", str(data["brand_id"]))
            span.set_attribute("license.type", data["license_type"].value)

            handler = CreateLicenseHandler(
                container.license_repository,
                container.asset_repository,
                container.brand_repository,
                container.audit_repository,
                policy=get_licensing_policy(),
                preview_service=container.preview_service(),
            )
            command = CreateLicenseCommand(
                actor=request.actor,
                ip_asset_id=data["ip_asset_id"],
                brand_id=data["brand_id"],
                license_type=data["license_type"],
                start_date=data["start_date"],
                end_date=data["end_date"],
                scope=data["scope"],
                fee_cents=data.get("fee_cents"),
                rev_share_bps=data.get("rev_share_bps", 0),
                auto_renew=data.get("auto_renew", False),
                payment_terms=data.get("payment_terms") or None,
                billing_frequency=data.get("billing_frequency") or None,
                project_id=data.get("project_id"),
            )

            async def create() -> Dict[str, Any]:
                result = await handler.handle(command)
                return dict(CreateLicenseResponseSerializer(result).data)

            body = await _idempotent(request, "create_license", create)

            span.set_attribute("license.id", str(body["license"]["id"]))
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="list_licenses",
        summary="List Licenses",
        description=(
            "List licenses visible to the caller, newest first. Brand callers "
            "must filter on a brand they own; creators see licenses on their assets."
        ),
        tags=["Licenses"],
        parameters=[
            OpenApiParameter(name="brand_id", type=uuid.UUID, required=False),
            OpenApiParameter(name="ip_asset_id", type=uuid.UUID, required=False),
            OpenApiParameter(name="status", type=str, required=False),
        ],
        responses={200: LicenseSerializer(many=True), **_ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """List licenses."""
        return async_to_sync(self._handle_list_licenses)(request)

    async def _handle_list_licenses(self, request: Request) -> Response:
        """Async handler for list licenses."""
        with tracer.start_as_current_span("list_licenses") as span:
            span.set_attribute("operation", "list_licenses")

            serializer = LicenseFilterSerializer(data=request.query_params)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = ListLicensesHandler(
                container.license_repository, container.brand_repository, container.asset_repository
            )
            licenses = await handler.handle(
                ListLicensesQuery(
                    actor=request.actor,
                    brand_id=data.get("brand_id"),
                    ip_asset_id=data.get("ip_asset_id"),
                    status=data.get("status"),
                )
            )

            span.set_attribute("licenses.count", len(licenses))
            span.set_status(Status(StatusCode.OK))
            return Response(LicenseSerializer(licenses, many=True).data, status=status.HTTP_200_OK)


class ValidateLicenseView(APIView):
    """View for dry-run license validation."""

    @extend_schema(
        operation_id="validate_license",
        summary="Validate License Terms",
        description="Run every validation check on proposed terms without persisting anything.",
        tags=["Licenses"],
        request=ValidateLicenseRequestSerializer,
        responses={200: {"description": "Validation result with errors, warnings and conflicts"}},
    )
    def post(self, request: Request) -> Response:
        """Validate license terms."""
        return async_to_sync(self._handle_validate_license)(request)

    async def _handle_validate_license(self, request: Request) -> Response:
        """Async handler for validate license."""
        with tracer.start_as_current_span("validate_license") as span:
            span.set_attribute("operation", "validate_license")

            serializer = ValidateLicenseRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = ValidateLicenseHandler(
                container.license_repository, container.asset_repository, container.brand_repository
            )
            result = await handler.handle(
                ValidateLicenseQuery(
                    ip_asset_id=data["ip_asset_id"],
                    brand_id=data["brand_id"],
                    license_type=data["license_type"],
                    start_date=data["start_date"],
                    end_date=data["end_date"],
                    scope=data["scope"],
                    fee_cents=data.get("fee_cents") or 0,
                    rev_share_bps=data.get("rev_share_bps", 0),
                    collect_all=data.get("collect_all", True),
                    exclude_license_id=data.get("exclude_license_id"),
                )
            )

            span.set_attribute("validation.valid", result.valid)
            span.set_status(Status(StatusCode.OK))
            return Response(result.to_dict(), status=status.HTTP_200_OK)


class FeeQuoteView(APIView):
    """View for fee quotes."""

    @extend_schema(
        operation_id="quote_license_fee",
        summary="Quote License Fee",
        description="Compute the fee breakdown, a suggested revenue share and the estimated total value.",
        tags=["Licenses"],
        request=FeeQuoteRequestSerializer,
        responses={200: FeeQuoteSerializer, **_ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Quote a license fee."""
        return async_to_sync(self._handle_fee_quote)(request)

    async def _handle_fee_quote(self, request: Request) -> Response:
        """Async handler for fee quote."""
        with tracer.start_as_current_span("quote_license_fee") as span:
            span.set_attribute("operation", "quote_license_fee")

            serializer = FeeQuoteRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = CalculateFeeHandler(
                container.asset_repository, container.brand_repository, policy=get_licensing_policy()
            )
            quote = await handler.handle(
                CalculateFeeQuery(
                    ip_asset_id=data["ip_asset_id"],
                    brand_id=data["brand_id"],
                    license_type=data["license_type"],
                    start_date=data["start_date"],
                    end_date=data["end_date"],
                    scope=data["scope"],
                    asset_type=data.get("asset_type"),
                    rev_share_bps=data.get("rev_share_bps"),
                    projected_revenue_cents=data.get("projected_revenue_cents"),
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(FeeQuoteSerializer(quote).data, status=status.HTTP_200_OK)


class ConflictCheckView(APIView):
    """View for conflict checks."""

    @extend_schema(
        operation_id="check_conflicts",
        summary="Check Conflicts",
        description=(
            "Detect collisions of a proposed grant with existing licenses on the asset. "
            "Conflicts against drafts are flagged as warnings."
        ),
        tags=["Conflicts"],
        request=ConflictCheckRequestSerializer,
        responses={200: {"description": "Conflict result"}, **_ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Check a proposed grant for conflicts."""
        return async_to_sync(self._handle_check_conflicts)(request)

    async def _handle_check_conflicts(self, request: Request) -> Response:
        """Async handler for check conflicts."""
        with tracer.start_as_current_span("check_conflicts") as span:
            span.set_attribute("operation", "check_conflicts")

            serializer = ConflictCheckRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data
            span.set_attribute("ip_asset.id", str(data["ip_asset_id"]))

            handler = CheckConflictsHandler(container.license_repository)
            result = await handler.handle(
                CheckConflictsQuery(
                    ip_asset_id=data["ip_asset_id"],
                    start_date=data["start_date"],
                    end_date=data["end_date"],
                    license_type=data["license_type"],
                    scope=data["scope"],
                    brand_id=data.get("brand_id"),
                    rev_share_bps=data.get("rev_share_bps", 0),
                    exclude_license_id=data.get("exclude_license_id"),
                )
            )

            span.set_attribute("conflicts.count", len(result.conflicts))
            span.set_status(Status(StatusCode.OK))
            return Response(result.to_dict(), status=status.HTTP_200_OK)


class ConflictPreviewView(APIView):
    """View for the conflict preview of an asset."""

    @extend_schema(
        operation_id="conflict_preview",
        summary="Conflict Preview",
        description=(
            "Summarise the active grants on an asset: exclusive count, blocked media, "
            "used territories and the earliest date a new exclusive grant could start."
        ),
        tags=["Conflicts"],
        responses={200: {"description": "Conflict preview"}},
    )
    def get(self, request: Request, ip_asset_id: uuid.UUID) -> Response:
        """Get the conflict preview of an asset."""
        return async_to_sync(self._handle_conflict_preview)(request, ip_asset_id)

    async def _handle_conflict_preview(self, request: Request, ip_asset_id: uuid.UUID) -> Response:
        """Async handler for conflict preview."""
        with tracer.start_as_current_span("conflict_preview") as span:
            span.set_attribute("operation", "conflict_preview")
            span.set_attribute("ip_asset.id", str(ip_asset_id))

            handler = GetConflictPreviewHandler(
                container.license_repository, preview_service=container.preview_service()
            )
            preview = await handler.handle(GetConflictPreviewQuery(ip_asset_id=ip_asset_id))

            span.set_status(Status(StatusCode.OK))
            return Response(preview, status=status.HTTP_200_OK)


class StatusDistributionView(APIView):
    """View for license counts per status."""

    @extend_schema(
        operation_id="status_distribution",
        summary="Status Distribution",
        description="Count licenses per status for one brand, or platform-wide for admins.",
        tags=["Licenses"],
        parameters=[OpenApiParameter(name="brand_id", type=uuid.UUID, required=False)],
        responses={200: {"description": "Count per status"}, **_ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """Get the status distribution."""
        return async_to_sync(self._handle_status_distribution)(request)

    async def _handle_status_distribution(self, request: Request) -> Response:
        """Async handler for status distribution."""
        with tracer.start_as_current_span("status_distribution") as span:
            span.set_attribute("operation", "status_distribution")

            serializer = BrandFilterSerializer(data=request.query_params)
            if not serializer.is_valid():
                return _invalid(span, serializer)

            handler = GetStatusDistributionHandler(
                container.license_repository, container.brand_repository, container.asset_repository
            )
            distribution = await handler.handle(
                GetStatusDistributionQuery(
                    actor=request.actor, brand_id=serializer.validated_data.get("brand_id")
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(distribution, status=status.HTTP_200_OK)


class LicenseDetailView(APIView):
    """View for a single license."""

    @extend_schema(
        operation_id="get_license",
        summary="Get License",
        tags=["Licenses"],
        responses={200: LicenseSerializer, **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """Get a license."""
        return async_to_sync(self._handle_get_license)(request, license_id)

    async def _handle_get_license(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for get license."""
        with tracer.start_as_current_span("get_license") as span:
            span.set_attribute("operation", "get_license")
            span.set_attribute("license.id", str(license_id))

            handler = GetLicenseHandler(
                container.license_repository, container.brand_repository, container.asset_repository
            )
            license = await handler.handle(GetLicenseQuery(license_id=license_id, actor=request.actor))

            span.set_attribute("license.status", license.status)
            span.set_status(Status(StatusCode.OK))
            return Response(LicenseSerializer(license).data, status=status.HTTP_200_OK)


class StatusHistoryView(APIView):
    """View for the status history of a license."""

    @extend_schema(
        operation_id="license_status_history",
        summary="Status History",
        description="Status changes of a license, newest first.",
        tags=["Licenses"],
        responses={200: StatusHistorySerializer(many=True), **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """Get the status history of a license."""
        return async_to_sync(self._handle_status_history)(request, license_id)

    async def _handle_status_history(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for status history."""
        with tracer.start_as_current_span("license_status_history") as span:
            span.set_attribute("operation", "license_status_history")
            span.set_attribute("license.id", str(license_id))

            handler = GetStatusHistoryHandler(
                container.license_repository,
                container.history_repository,
                container.brand_repository,
                container.asset_repository,
            )
            entries = await handler.handle(GetStatusHistoryQuery(license_id=license_id, actor=request.actor))

            span.set_status(Status(StatusCode.OK))
            return Response(StatusHistorySerializer(entries, many=True).data, status=status.HTTP_200_OK)


class TransitionStatusView(APIView):
    """View for explicit status transitions."""

    @extend_schema(
        operation_id="transition_license_status",
        summary="Transition Status",
        description=(
            "Move a license along the status graph. Illegal edges and unmet "
            "per-status requirements return 409."
        ),
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=TransitionRequestSerializer,
        responses={200: LicenseSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Transition a license."""
        return async_to_sync(self._handle_transition)(request, license_id)

    async def _handle_transition(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for transition."""
        with tracer.start_as_current_span("transition_license_status") as span:
            span.set_attribute("operation", "transition_license_status")
            span.set_attribute("license.id", str(license_id))

            serializer = TransitionRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data
            span.set_attribute("license.to_status", data["to_status"].value)

            handler = _status_handler(TransitionStatusHandler)
            command = TransitionStatusCommand(
                license_id=license_id,
                to_status=data["to_status"],
                actor=request.actor,
                reason=data.get("reason") or None,
            )

            async def transition() -> Dict[str, Any]:
                return dict(LicenseSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "transition_license_status", transition)

            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class SubmitLicenseView(APIView):
    """View for submitting a draft for approval."""

    @extend_schema(
        operation_id="submit_license",
        summary="Submit License",
        description="Move a DRAFT license to PENDING_APPROVAL.",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=None,
        responses={200: LicenseSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Submit a license."""
        return async_to_sync(self._handle_submit)(request, license_id)

    async def _handle_submit(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for submit."""
        with tracer.start_as_current_span("submit_license") as span:
            span.set_attribute("operation", "submit_license")
            span.set_attribute("license.id", str(license_id))

            handler = _status_handler(SubmitLicenseHandler)
            command = SubmitLicenseCommand(license_id=license_id, actor=request.actor)

            async def submit() -> Dict[str, Any]:
                return dict(LicenseSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "submit_license", submit)

            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class TerminateLicenseView(APIView):
    """View for terminating a license."""

    @extend_schema(
        operation_id="terminate_license",
        summary="Terminate License",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=TerminateRequestSerializer,
        responses={200: LicenseSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Terminate a license."""
        return async_to_sync(self._handle_terminate)(request, license_id)

    async def _handle_terminate(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for terminate."""
        with tracer.start_as_current_span("terminate_license") as span:
            span.set_attribute("operation", "terminate_license")
            span.set_attribute("license.id", str(license_id))

            serializer = TerminateRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)

            handler = _status_handler(TerminateLicenseHandler)
            command = TerminateLicenseCommand(
                license_id=license_id, actor=request.actor, reason=serializer.validated_data["reason"]
            )

            async def terminate() -> Dict[str, Any]:
                return dict(LicenseSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "terminate_license", terminate)

            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class LicenseApprovalView(APIView):
    """View for approval decisions on a license."""

    @extend_schema(
        operation_id="process_license_approval",
        summary="Approve, Reject or Request Changes",
        description=(
            "Record an approval decision. Once every required approver has approved "
            "the license moves to PENDING_SIGNATURE."
        ),
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=ApprovalActionRequestSerializer,
        responses={200: ApprovalResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Process an approval decision."""
        return async_to_sync(self._handle_approval)(request, license_id)

    async def _handle_approval(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for approval."""
        with tracer.start_as_current_span("process_license_approval") as span:
            span.set_attribute("operation", "process_license_approval")
            span.set_attribute("license.id", str(license_id))

            serializer = ApprovalActionRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data
            span.set_attribute("approval.action", data["action"].value)

            handler = _status_handler(ProcessLicenseApprovalHandler)
            command = ProcessLicenseApprovalCommand(
                license_id=license_id,
                actor=request.actor,
                action=data["action"],
                comments=data.get("comments") or None,
            )

            async def approve() -> Dict[str, Any]:
                return dict(ApprovalResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "process_approval", approve)

            span.set_attribute("license.status", body["license"]["status"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class SignLicenseView(APIView):
    """View for signing a license."""

    @extend_schema(
        operation_id="sign_license",
        summary="Sign License",
        description="Sign a PENDING_SIGNATURE license. The last required signature activates it.",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=None,
        responses={200: SignatureResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Sign a license."""
        return async_to_sync(self._handle_sign)(request, license_id)

    async def _handle_sign(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for sign."""
        with tracer.start_as_current_span("sign_license") as span:
            span.set_attribute("operation", "sign_license")
            span.set_attribute("license.id", str(license_id))

            handler = _status_handler(SignLicenseHandler)
            command = SignLicenseCommand(license_id=license_id, actor=request.actor)

            async def sign() -> Dict[str, Any]:
                return dict(SignatureResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "sign_license", sign)

            span.set_attribute("license.fully_executed", body["fully_executed"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class VerifySignatureView(APIView):
    """View for verifying the signature proof of a license."""

    @extend_schema(
        operation_id="verify_license_signature",
        summary="Verify Signature",
        tags=["Workflows"],
        responses={200: SignatureVerificationSerializer, **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """Verify the signature proof."""
        return async_to_sync(self._handle_verify)(request, license_id)

    async def _handle_verify(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for verify signature."""
        with tracer.start_as_current_span("verify_license_signature") as span:
            span.set_attribute("operation", "verify_license_signature")
            span.set_attribute("license.id", str(license_id))

            handler = VerifySignatureHandler(
                container.license_repository, container.brand_repository, container.asset_repository
            )
            result = await handler.handle(VerifySignatureQuery(license_id=license_id, actor=request.actor))

            span.set_attribute("signature.valid", result.valid)
            span.set_status(Status(StatusCode.OK))
            return Response(SignatureVerificationSerializer(result).data, status=status.HTTP_200_OK)


class LicenseAmendmentsView(APIView):
    """View for proposing and listing amendments of a license."""

    @extend_schema(
        operation_id="propose_amendment",
        summary="Propose Amendment",
        description=(
            "Propose field changes on a license. The counter-parties must approve "
            "before the changes are applied."
        ),
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=ProposeAmendmentRequestSerializer,
        responses={201: AmendmentResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Propose an amendment."""
        return async_to_sync(self._handle_propose)(request, license_id)

    async def _handle_propose(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for propose amendment."""
        with tracer.start_as_current_span("propose_amendment") as span:
            span.set_attribute("operation", "propose_amendment")
            span.set_attribute("license.id", str(license_id))

            serializer = ProposeAmendmentRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = _amendment_handler(ProposeAmendmentHandler)
            command = ProposeAmendmentCommand(
                license_id=license_id,
                actor=request.actor,
                amendment_type=data["amendment_type"],
                justification=data["justification"],
                changes=dict(data["changes"]),
            )

            async def propose() -> Dict[str, Any]:
                return dict(AmendmentResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "propose_amendment", propose)

            span.set_attribute("amendment.id", str(body["amendment"]["id"]))
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="list_amendments",
        summary="List Amendments",
        tags=["Workflows"],
        responses={200: AmendmentSerializer(many=True), **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """List amendments of a license."""
        return async_to_sync(self._handle_list_amendments)(request, license_id)

    async def _handle_list_amendments(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for list amendments."""
        with tracer.start_as_current_span("list_amendments") as span:
            span.set_attribute("operation", "list_amendments")
            span.set_attribute("license.id", str(license_id))

            handler = GetAmendmentsHandler(
                container.license_repository,
                container.amendment_repository,
                container.brand_repository,
                container.asset_repository,
            )
            amendments = await handler.handle(GetAmendmentsQuery(license_id=license_id, actor=request.actor))

            span.set_status(Status(StatusCode.OK))
            return Response(AmendmentSerializer(amendments, many=True).data, status=status.HTTP_200_OK)


class AmendmentHistoryView(APIView):
    """View for the per-field change trail of a license."""

    @extend_schema(
        operation_id="amendment_history",
        summary="Amendment History",
        description="Field changes applied by approved amendments, oldest first.",
        tags=["Workflows"],
        responses={200: AmendmentHistoryItemSerializer(many=True), **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """Get the amendment history of a license."""
        return async_to_sync(self._handle_amendment_history)(request, license_id)

    async def _handle_amendment_history(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for amendment history."""
        with tracer.start_as_current_span("amendment_history") as span:
            span.set_attribute("operation", "amendment_history")
            span.set_attribute("license.id", str(license_id))

            handler = GetAmendmentHistoryHandler(
                container.license_repository,
                container.amendment_repository,
                container.brand_repository,
                container.asset_repository,
            )
            items = await handler.handle(GetAmendmentsQuery(license_id=license_id, actor=request.actor))

            span.set_status(Status(StatusCode.OK))
            return Response(AmendmentHistoryItemSerializer(items, many=True).data, status=status.HTTP_200_OK)


class PendingAmendmentsView(APIView):
    """View for amendments awaiting the caller's decision."""

    @extend_schema(
        operation_id="pending_amendments",
        summary="Pending Amendments",
        tags=["Workflows"],
        responses={200: AmendmentSerializer(many=True)},
    )
    def get(self, request: Request) -> Response:
        """List amendments pending for the caller."""
        return async_to_sync(self._handle_pending_amendments)(request)

    async def _handle_pending_amendments(self, request: Request) -> Response:
        """Async handler for pending amendments."""
        with tracer.start_as_current_span("pending_amendments") as span:
            span.set_attribute("operation", "pending_amendments")

            handler = GetPendingAmendmentsHandler(
                container.license_repository,
                container.amendment_repository,
                container.brand_repository,
                container.asset_repository,
            )
            amendments = await handler.handle(GetPendingAmendmentsQuery(actor=request.actor))

            span.set_attribute("amendments.count", len(amendments))
            span.set_status(Status(StatusCode.OK))
            return Response(AmendmentSerializer(amendments, many=True).data, status=status.HTTP_200_OK)


class AmendmentDecisionView(APIView):
    """View for approving or rejecting an amendment."""

    @extend_schema(
        operation_id="decide_amendment",
        summary="Decide Amendment",
        description=(
            "Approve or reject an amendment. A rejection closes it; the last approval "
            "applies the changes to the license."
        ),
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=AmendmentDecisionRequestSerializer,
        responses={200: AmendmentResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, amendment_id: uuid.UUID) -> Response:
        """Decide an amendment."""
        return async_to_sync(self._handle_decide_amendment)(request, amendment_id)

    async def _handle_decide_amendment(self, request: Request, amendment_id: uuid.UUID) -> Response:
        """Async handler for amendment decision."""
        with tracer.start_as_current_span("decide_amendment") as span:
            span.set_attribute("operation", "decide_amendment")
            span.set_attribute("amendment.id", str(amendment_id))

            serializer = AmendmentDecisionRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = _amendment_handler(ProcessAmendmentApprovalHandler)
            command = ProcessAmendmentApprovalCommand(
                amendment_id=amendment_id,
                actor=request.actor,
                approve=data["approve"],
                comments=data.get("comments") or None,
            )

            async def decide() -> Dict[str, Any]:
                return dict(AmendmentResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "decide_amendment", decide)

            span.set_attribute("amendment.status", body["amendment"]["status"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class LicenseExtensionsView(APIView):
    """View for requesting and listing extensions of a license."""

    @extend_schema(
        operation_id="request_extension",
        summary="Request Extension",
        description=(
            "Request more days on a license. Short extensions with a small fee "
            "are approved immediately."
        ),
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=ExtensionRequestSerializer,
        responses={201: ExtensionResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Request an extension."""
        return async_to_sync(self._handle_request_extension)(request, license_id)

    async def _handle_request_extension(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for request extension."""
        with tracer.start_as_current_span("request_extension") as span:
            span.set_attribute("operation", "request_extension")
            span.set_attribute("license.id", str(license_id))

            serializer = ExtensionRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data
            span.set_attribute("extension.days", data["extension_days"])

            handler = _extension_handler(RequestExtensionHandler)
            command = RequestExtensionCommand(
                license_id=license_id,
                actor=request.actor,
                extension_days=data["extension_days"],
                justification=data.get("justification", ""),
            )

            async def request_extension() -> Dict[str, Any]:
                return dict(ExtensionResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "request_extension", request_extension)

            span.set_attribute("extension.auto_approved", body["auto_approved"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="list_extensions",
        summary="List Extensions",
        tags=["Workflows"],
        responses={200: ExtensionSerializer(many=True), **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """List extensions of a license."""
        return async_to_sync(self._handle_list_extensions)(request, license_id)

    async def _handle_list_extensions(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for list extensions."""
        with tracer.start_as_current_span("list_extensions") as span:
            span.set_attribute("operation", "list_extensions")
            span.set_attribute("license.id", str(license_id))

            handler = GetExtensionsHandler(
                container.license_repository,
                container.extension_repository,
                container.brand_repository,
                container.asset_repository,
            )
            extensions = await handler.handle(GetExtensionsQuery(license_id=license_id, actor=request.actor))

            span.set_status(Status(StatusCode.OK))
            return Response(ExtensionSerializer(extensions, many=True).data, status=status.HTTP_200_OK)


class PendingExtensionsView(APIView):
    """View for extension requests awaiting the caller's decision."""

    @extend_schema(
        operation_id="pending_extensions",
        summary="Pending Extensions",
        tags=["Workflows"],
        responses={200: ExtensionSerializer(many=True)},
    )
    def get(self, request: Request) -> Response:
        """List extensions pending for the caller."""
        return async_to_sync(self._handle_pending_extensions)(request)

    async def _handle_pending_extensions(self, request: Request) -> Response:
        """Async handler for pending extensions."""
        with tracer.start_as_current_span("pending_extensions") as span:
            span.set_attribute("operation", "pending_extensions")

            handler = GetPendingExtensionsHandler(
                container.license_repository,
                container.extension_repository,
                container.brand_repository,
                container.asset_repository,
            )
            extensions = await handler.handle(GetPendingExtensionsQuery(actor=request.actor))

            span.set_attribute("extensions.count", len(extensions))
            span.set_status(Status(StatusCode.OK))
            return Response(ExtensionSerializer(extensions, many=True).data, status=status.HTTP_200_OK)


class ExtensionAnalyticsView(APIView):
    """View for extension statistics."""

    @extend_schema(
        operation_id="extension_analytics",
        summary="Extension Analytics",
        tags=["Workflows"],
        parameters=[OpenApiParameter(name="brand_id", type=uuid.UUID, required=False)],
        responses={200: ExtensionAnalyticsSerializer, **_ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """Get extension statistics."""
        return async_to_sync(self._handle_extension_analytics)(request)

    async def _handle_extension_analytics(self, request: Request) -> Response:
        """Async handler for extension analytics."""
        with tracer.start_as_current_span("extension_analytics") as span:
            span.set_attribute("operation", "extension_analytics")

            serializer = BrandFilterSerializer(data=request.query_params)
            if not serializer.is_valid():
                return _invalid(span, serializer)

            handler = GetExtensionAnalyticsHandler(
                container.license_repository,
                container.extension_repository,
                container.brand_repository,
                container.asset_repository,
            )
            analytics = await handler.handle(
                GetExtensionAnalyticsQuery(
                    actor=request.actor, brand_id=serializer.validated_data.get("brand_id")
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(ExtensionAnalyticsSerializer(analytics).data, status=status.HTTP_200_OK)


class ExtensionDecisionView(APIView):
    """View for approving or rejecting an extension request."""

    @extend_schema(
        operation_id="decide_extension",
        summary="Decide Extension",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=ExtensionDecisionRequestSerializer,
        responses={200: ExtensionResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, extension_id: uuid.UUID) -> Response:
        """Decide an extension request."""
        return async_to_sync(self._handle_decide_extension)(request, extension_id)

    async def _handle_decide_extension(self, request: Request, extension_id: uuid.UUID) -> Response:
        """Async handler for extension decision."""
        with tracer.start_as_current_span("decide_extension") as span:
            span.set_attribute("operation", "decide_extension")
            span.set_attribute("extension.id", str(extension_id))

            serializer = ExtensionDecisionRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data

            handler = _extension_handler(ProcessExtensionApprovalHandler)
            command = ProcessExtensionApprovalCommand(
                extension_id=extension_id,
                actor=request.actor,
                approve=data["approve"],
                rejection_reason=data.get("rejection_reason") or None,
            )

            async def decide() -> Dict[str, Any]:
                return dict(ExtensionResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "decide_extension", decide)

            span.set_attribute("extension.status", body["extension"]["status"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_200_OK)


class RenewalEligibilityView(APIView):
    """View for renewal eligibility."""

    @extend_schema(
        operation_id="renewal_eligibility",
        summary="Renewal Eligibility",
        description="Report whether a license can be renewed, with blocking reasons and warnings.",
        tags=["Workflows"],
        responses={200: {"description": "Eligibility result"}, **_ERROR_RESPONSES},
    )
    def get(self, request: Request, license_id: uuid.UUID) -> Response:
        """Check renewal eligibility."""
        return async_to_sync(self._handle_eligibility)(request, license_id)

    async def _handle_eligibility(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for renewal eligibility."""
        with tracer.start_as_current_span("renewal_eligibility") as span:
            span.set_attribute("operation", "renewal_eligibility")
            span.set_attribute("license.id", str(license_id))

            handler = _renewal_handler(CheckRenewalEligibilityHandler)
            result = await handler.handle(
                CheckRenewalEligibilityQuery(license_id=license_id, actor=request.actor)
            )

            span.set_attribute("renewal.eligible", result.eligible)
            span.set_status(Status(StatusCode.OK))
            return Response(result.to_dict(), status=status.HTTP_200_OK)


class RenewalOfferView(APIView):
    """View for generating a renewal offer."""

    @extend_schema(
        operation_id="generate_renewal_offer",
        summary="Generate Renewal Offer",
        description="Price a renewal and attach the offer to the license.",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=RenewalOfferRequestSerializer,
        responses={201: RenewalOfferResultSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Generate a renewal offer."""
        return async_to_sync(self._handle_generate_offer)(request, license_id)

    async def _handle_generate_offer(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for renewal offer."""
        with tracer.start_as_current_span("generate_renewal_offer") as span:
            span.set_attribute("operation", "generate_renewal_offer")
            span.set_attribute("license.id", str(license_id))

            serializer = RenewalOfferRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)
            data = serializer.validated_data
            span.set_attribute("renewal.strategy", data["strategy"].value)

            handler = _renewal_handler(GenerateRenewalOfferHandler)
            command = GenerateRenewalOfferCommand(
                license_id=license_id,
                actor=request.actor,
                strategy=data["strategy"],
                negotiated_percent=data.get("negotiated_percent"),
            )

            async def generate() -> Dict[str, Any]:
                return dict(RenewalOfferResultSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "generate_renewal_offer", generate)

            span.set_attribute("renewal.offer_id", body["offer_id"])
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_201_CREATED)


class AcceptRenewalOfferView(APIView):
    """View for accepting a renewal offer."""

    @extend_schema(
        operation_id="accept_renewal_offer",
        summary="Accept Renewal Offer",
        description="Create the renewal license from a pending offer.",
        tags=["Workflows"],
        parameters=[_IDEMPOTENCY_PARAMETER],
        request=AcceptRenewalOfferRequestSerializer,
        responses={201: LicenseSerializer, **_WRITE_RESPONSES},
    )
    def post(self, request: Request, license_id: uuid.UUID) -> Response:
        """Accept a renewal offer."""
        return async_to_sync(self._handle_accept_offer)(request, license_id)

    async def _handle_accept_offer(self, request: Request, license_id: uuid.UUID) -> Response:
        """Async handler for accept renewal offer."""
        with tracer.start_as_current_span("accept_renewal_offer") as span:
            span.set_attribute("operation", "accept_renewal_offer")
            span.set_attribute("license.id", str(license_id))

            serializer = AcceptRenewalOfferRequestSerializer(data=request.data)
            if not serializer.is_valid():
                return _invalid(span, serializer)

            handler = _renewal_handler(AcceptRenewalOfferHandler)
            command = AcceptRenewalOfferCommand(
                license_id=license_id,
                offer_id=serializer.validated_data["offer_id"],
                actor=request.actor,
            )

            async def accept() -> Dict[str, Any]:
                return dict(LicenseSerializer(await handler.handle(command)).data)

            body = await _idempotent(request, "accept_renewal_offer", accept)

            span.set_attribute("renewal.license_id", str(body["id"]))
            span.set_status(Status(StatusCode.OK))
            return Response(body, status=status.HTTP_201_CREATED)
