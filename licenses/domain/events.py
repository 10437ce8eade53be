"""
License domain events.

Domain events represent something that happened in the license domain.
They are published after the originating transaction commits.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from core.domain.events import DomainEvent
from core.domain.value_objects import LicenseStatus


class LicenseCreated(DomainEvent):
    """Event raised when a license is created."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        ip_asset_id: uuid.UUID,
        license_type: str,
        fee_cents: int,
        created_by: str,
        parent_license_id: Optional[uuid.UUID] = None,
        occurred_at: Optional[datetime] = None,
    ):
        """
        Initialize LicenseCreated event.

        Args:
            license_id: License UUID
            brand_id: Licensee brand UUID
            ip_asset_id: Licensed asset UUID
            license_type: Exclusivity tier value
            fee_cents: Fee in cents
            created_by: Actor that created the license
            parent_license_id: Set when the license renews another one
            occurred_at: When the event occurred
        """
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.ip_asset_id = ip_asset_id
        self.license_type = license_type
        self.fee_cents = fee_cents
        self.created_by = created_by
        self.parent_license_id = parent_license_id


class LicenseStatusChanged(DomainEvent):
    """Event raised for every status transition."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        ip_asset_id: uuid.UUID,
        from_status: LicenseStatus,
        to_status: LicenseStatus,
        transitioned_by: str,
        reason: Optional[str] = None,
        automated: bool = False,
        occurred_at: Optional[datetime] = None,
    ):
        """
        Initialize LicenseStatusChanged event.

        Args:
            license_id: License UUID
            brand_id: Licensee brand UUID
            ip_asset_id: Licensed asset UUID
            from_status: Status before the transition
            to_status: Status after the transition
            transitioned_by: Actor id (or "system")
            reason: Free-text reason
            automated: Whether a sweep drove the transition
            occurred_at: When the event occurred
        """
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.ip_asset_id = ip_asset_id
        self.from_status = from_status
        self.to_status = to_status
        self.transitioned_by = transitioned_by
        self.reason = reason
        self.automated = automated


class LicenseApprovalRecorded(DomainEvent):
    """Event raised when an approver acts on a license awaiting approval."""

    def __init__(
        self,
        license_id: uuid.UUID,
        user_id: str,
        role: str,
        action: str,
        comments: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.user_id = user_id
        self.role = role
        self.action = action
        self.comments = comments


class LicenseSigned(DomainEvent):
    """Event raised when a party signs a license."""

    def __init__(
        self,
        license_id: uuid.UUID,
        user_id: str,
        role: str,
        fully_executed: bool,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.user_id = user_id
        self.role = role
        self.fully_executed = fully_executed


class AmendmentProposed(DomainEvent):
    """Event raised when an amendment is proposed."""

    def __init__(
        self,
        amendment_id: uuid.UUID,
        license_id: uuid.UUID,
        amendment_number: int,
        proposed_by: str,
        approver_ids: List[str],
        fields_changed: List[str],
        occurred_at: Optional[datetime] = None,
    ):
        """
        Initialize AmendmentProposed event.

        Args:
            amendment_id: Amendment UUID
            license_id: Amended license UUID
            amendment_number: Sequence number on the license
            proposed_by: Proposer user id
            approver_ids: Users asked to approve
            fields_changed: Names of the amended fields
            occurred_at: When the event occurred
        """
        self._init_event(license_id, occurred_at)
        self.amendment_id = amendment_id
        self.license_id = license_id
        self.amendment_number = amendment_number
        self.proposed_by = proposed_by
        self.approver_ids = approver_ids
        self.fields_changed = fields_changed


class AmendmentDecided(DomainEvent):
    """Event raised when an amendment reaches APPROVED or REJECTED."""

    def __init__(
        self,
        amendment_id: uuid.UUID,
        license_id: uuid.UUID,
        status: str,
        proposed_by: str,
        rejection_reason: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.amendment_id = amendment_id
        self.license_id = license_id
        self.status = status
        self.proposed_by = proposed_by
        self.rejection_reason = rejection_reason


class ExtensionRequested(DomainEvent):
    """Event raised when an extension needs owner approval."""

    def __init__(
        self,
        extension_id: uuid.UUID,
        license_id: uuid.UUID,
        requested_by: str,
        extension_days: int,
        additional_fee_cents: int,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.extension_id = extension_id
        self.license_id = license_id
        self.requested_by = requested_by
        self.extension_days = extension_days
        self.additional_fee_cents = additional_fee_cents


class ExtensionDecided(DomainEvent):
    """Event raised when an extension is approved (manually or automatically) or rejected."""

    def __init__(
        self,
        extension_id: uuid.UUID,
        license_id: uuid.UUID,
        status: str,
        requested_by: str,
        new_end_date: datetime,
        rejection_reason: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.extension_id = extension_id
        self.license_id = license_id
        self.status = status
        self.requested_by = requested_by
        self.new_end_date = new_end_date
        self.rejection_reason = rejection_reason


class RenewalOfferGenerated(DomainEvent):
    """Event raised when a renewal offer is attached to a license."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        offer_id: str,
        fee_cents: int,
        expires_at: datetime,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.offer_id = offer_id
        self.fee_cents = fee_cents
        self.expires_at = expires_at


class RenewalOfferAccepted(DomainEvent):
    """Event raised when a renewal offer becomes a new license."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        offer_id: str,
        renewal_license_id: uuid.UUID,
        accepted_by: str,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.offer_id = offer_id
        self.renewal_license_id = renewal_license_id
        self.accepted_by = accepted_by


class LicenseExpiryNotice(DomainEvent):
    """Event raised when a staged expiry notice is due for a license."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        ip_asset_id: uuid.UUID,
        days_before: int,
        urgency: str,
        end_date: datetime,
        occurred_at: Optional[datetime] = None,
    ):
        """
        Initialize LicenseExpiryNotice event.

        Args:
            license_id: License UUID
            brand_id: Licensee brand UUID
            ip_asset_id: Licensed asset UUID
            days_before: Stage threshold in days before the end date
            urgency: informational, reminder or urgent
            end_date: End date the notice was sent for
            occurred_at: When the event occurred
        """
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.ip_asset_id = ip_asset_id
        self.days_before = days_before
        self.urgency = urgency
        self.end_date = end_date


class LicenseGracePeriodStarted(DomainEvent):
    """Event raised when a license passes its end date but is held in a grace period."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        grace_period_ends_at: datetime,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.grace_period_ends_at = grace_period_ends_at


class RenewalOfferReminder(DomainEvent):
    """Event raised once for a pending renewal offer close to its expiry."""

    def __init__(
        self,
        license_id: uuid.UUID,
        brand_id: uuid.UUID,
        offer_id: str,
        expires_at: datetime,
        occurred_at: Optional[datetime] = None,
    ):
        self._init_event(license_id, occurred_at)
        self.license_id = license_id
        self.brand_id = brand_id
        self.offer_id = offer_id
        self.expires_at = expires_at
