"""
URL configuration for licensing API endpoints.
"""

from django.urls import path

from api.v1.licenses import views

app_name = "licenses"

urlpatterns = [
    path("", views.LicenseCollectionView.as_view(), name="license-list"),
    path("validate", views.ValidateLicenseView.as_view(), name="validate-license"),
    path("fee-quote", views.FeeQuoteView.as_view(), name="fee-quote"),
    path("conflicts/check", views.ConflictCheckView.as_view(), name="check-conflicts"),
    path(
        "conflicts/preview/<uuid:ip_asset_id>",
        views.ConflictPreviewView.as_view(),
        name="conflict-preview",
    ),
    path("distribution", views.StatusDistributionView.as_view(), name="status-distribution"),
    path("amendments/pending", views.PendingAmendmentsView.as_view(), name="pending-amendments"),
    path(
        "amendments/<uuid:amendment_id>/decision",
        views.AmendmentDecisionView.as_view(),
        name="decide-amendment",
    ),
    path("extensions/pending", views.PendingExtensionsView.as_view(), name="pending-extensions"),
    path("extensions/analytics", views.ExtensionAnalyticsView.as_view(), name="extension-analytics"),
    path(
        "extensions/<uuid:extension_id>/decision",
        views.ExtensionDecisionView.as_view(),
        name="decide-extension",
    ),
    path("<uuid:license_id>", views.LicenseDetailView.as_view(), name="license-detail"),
    path("<uuid:license_id>/history", views.StatusHistoryView.as_view(), name="license-history"),
    path("<uuid:license_id>/transition", views.TransitionStatusView.as_view(), name="transition-license"),
    path("<uuid:license_id>/submit", views.SubmitLicenseView.as_view(), name="submit-license"),
    path("<uuid:license_id>/terminate", views.TerminateLicenseView.as_view(), name="terminate-license"),
    path("<uuid:license_id>/approval", views.LicenseApprovalView.as_view(), name="license-approval"),
    path("<uuid:license_id>/sign", views.SignLicenseView.as_view(), name="sign-license"),
    path("<uuid:license_id>/signature", views.VerifySignatureView.as_view(), name="verify-signature"),
    path("<uuid:license_id>/amendments", views.LicenseAmendmentsView.as_view(), name="license-amendments"),
    path(
        "<uuid:license_id>/amendments/history",
        views.AmendmentHistoryView.as_view(),
        name="amendment-history",
    ),
    path("<uuid:license_id>/extensions", views.LicenseExtensionsView.as_view(), name="license-extensions"),
    path(
        "<uuid:license_id>/renewal/eligibility",
        views.RenewalEligibilityView.as_view(),
        name="renewal-eligibility",
    ),
    path("<uuid:license_id>/renewal/offer", views.RenewalOfferView.as_view(), name="renewal-offer"),
    path("<uuid:license_id>/renewal/accept", views.AcceptRenewalOfferView.as_view(), name="accept-renewal-offer"),
]
