"""
In-memory port implementations for handler tests.

They mirror the filtering rules of the Django repositories so handler
tests run without a database.
"""

import contextlib
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from assets.domain.asset import IpAsset, Ownership
from assets.domain.usage import UsageSummary
from assets.ports.asset_repository import AssetRepository
from assets.ports.usage_metrics_repository import UsageMetricsRepository
from brands.domain.brand import Brand
from brands.ports.brand_repository import BrandRepository
from core.domain.clock import utc_now
from core.domain.events import DomainEvent
from core.infrastructure.cache import CachePort
from core.infrastructure.events import InMemoryEventBus
from licenses.domain.amendment import Amendment, AmendmentStatus, ApprovalStatus
from licenses.domain.extension import Extension, ExtensionStatus
from licenses.domain.idempotency import IdempotencyRecord
from licenses.domain.license import License
from licenses.domain.scope import LicenseScope, MediaScope, PlacementScope
from licenses.domain.status_history import StatusHistoryEntry
from licenses.ports.amendment_repository import AmendmentRepository
from licenses.ports.audit_log_repository import AuditEntry, AuditLogRepository
from licenses.ports.extension_repository import ExtensionRepository
from licenses.ports.idempotency_repository import IdempotencyRepository
from licenses.ports.license_repository import LicenseRepository
from licenses.ports.status_history_repository import StatusHistoryRepository


@contextlib.asynccontextmanager
async def noop_atomic():
    yield


def make_scope(**placement) -> LicenseScope:
    """Digital media on social unless other placements are given."""
    placement = placement or {"social": True}
    return LicenseScope(media=MediaScope(digital=True), placement=PlacementScope(**placement))


class RecordingEventBus(InMemoryEventBus):
    """Event bus that keeps every published event."""

    def __init__(self):
        super().__init__()
        self.published: List[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.published.append(event)
        await super().publish(event)

    def of_type(self, event_type) -> List[DomainEvent]:
        return [e for e in self.published if isinstance(e, event_type)]


class DictCache(CachePort):
    def __init__(self):
        self.store: Dict[str, Any] = {}
        self.deleted: List[str] = []

    async def get(self, key: str) -> Optional[Any]:
        return self.store.get(key)

    async def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        self.store[key] = value

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.store.pop(key, None)


class InMemoryBrandRepository(BrandRepository):
    def __init__(self, *brands: Brand):
        self.items = {b.id: b for b in brands}

    async def save(self, brand: Brand) -> Brand:
        self.items[brand.id] = brand
        return brand

    async def find_by_id(self, brand_id: uuid.UUID) -> Optional[Brand]:
        return self.items.get(brand_id)


class InMemoryAssetRepository(AssetRepository):
    def __init__(self):
        self.items: Dict[uuid.UUID, IpAsset] = {}
        self.ownerships: Dict[uuid.UUID, List[Ownership]] = {}
        self.locked: List[uuid.UUID] = []

    def add(self, asset: IpAsset, *ownerships: Ownership) -> IpAsset:
        self.items[asset.id] = asset
        self.ownerships[asset.id] = list(ownerships)
        return asset

    async def save(self, asset: IpAsset) -> IpAsset:
        self.items[asset.id] = asset
        return asset

    async def find_by_id(self, asset_id: uuid.UUID) -> Optional[IpAsset]:
        return self.items.get(asset_id)

    async def find_ownerships(self, asset_id: uuid.UUID) -> List[Ownership]:
        return sorted(self.ownerships.get(asset_id, []), key=lambda o: o.start_date)

    async def lock(self, asset_id: uuid.UUID) -> None:
        self.locked.append(asset_id)

    async def find_asset_ids_owned_by(self, user_id: str) -> List[uuid.UUID]:
        now = utc_now()
        return [
            asset_id
            for asset_id, ownerships in self.ownerships.items()
            if any(
                o.creator.user_id == user_id and not o.creator.is_deleted and o.is_current(now)
                for o in ownerships
            )
        ]


class InMemoryUsageMetricsRepository(UsageMetricsRepository):
    def __init__(self, summary: Optional[UsageSummary] = None):
        self.summary = summary or UsageSummary()

    async def summarize(self, asset_id: uuid.UUID, since: datetime) -> UsageSummary:
        return self.summary


class InMemoryLicenseRepository(LicenseRepository):
    def __init__(self, *licenses: License):
        self.items: Dict[uuid.UUID, License] = {lic.id: lic for lic in licenses}

    def _live(self) -> List[License]:
        return [lic for lic in self.items.values() if not lic.is_deleted]

    async def save(self, license: License) -> License:
        self.items[license.id] = license
        return license

    async def find_by_id(self, license_id: uuid.UUID, for_update: bool = False) -> Optional[License]:
        return self.items.get(license_id)

    async def find_overlapping(
        self,
        ip_asset_id: uuid.UUID,
        start_date: datetime,
        end_date: datetime,
        statuses: Iterable,
        exclude_license_id: Optional[uuid.UUID] = None,
    ) -> List[License]:
        statuses = set(statuses)
        return [
            lic
            for lic in self._live()
            if lic.ip_asset_id == ip_asset_id
            and lic.status in statuses
            and lic.start_date <= end_date
            and lic.end_date >= start_date
            and lic.id != exclude_license_id
        ]

    async def find_by_filters(self, brand_id=None, ip_asset_id=None, statuses=None) -> List[License]:
        found = self._live()
        if brand_id:
            found = [lic for lic in found if lic.brand_id == brand_id]
        if ip_asset_id:
            found = [lic for lic in found if lic.ip_asset_id == ip_asset_id]
        if statuses is not None:
            statuses = set(statuses)
            found = [lic for lic in found if lic.status in statuses]
        return sorted(found, key=lambda lic: lic.created_at, reverse=True)

    async def find_children(self, parent_license_id: uuid.UUID, statuses=None) -> List[License]:
        found = [lic for lic in self._live() if lic.parent_license_id == parent_license_id]
        if statuses is not None:
            statuses = set(statuses)
            found = [lic for lic in found if lic.status in statuses]
        return found

    async def find_by_status(
        self,
        statuses,
        end_date_from=None,
        end_date_to=None,
        created_before=None,
        auto_renew=None,
    ) -> List[License]:
        statuses = set(statuses)
        found = [lic for lic in self._live() if lic.status in statuses]
        if end_date_from is not None:
            found = [lic for lic in found if lic.end_date >= end_date_from]
        if end_date_to is not None:
            found = [lic for lic in found if lic.end_date < end_date_to]
        if created_before is not None:
            found = [lic for lic in found if lic.created_at < created_before]
        if auto_renew is not None:
            found = [lic for lic in found if lic.auto_renew == auto_renew]
        return sorted(found, key=lambda lic: lic.end_date)

    async def find_market_comparables(
        self, ip_asset_id, statuses, created_after, exclude_license_id
    ) -> List[License]:
        statuses = set(statuses)
        return [
            lic
            for lic in self._live()
            if lic.ip_asset_id == ip_asset_id
            and lic.status in statuses
            and lic.created_at >= created_after
            and lic.id != exclude_license_id
        ]

    async def sum_fees(self, brand_id: uuid.UUID, statuses) -> int:
        statuses = set(statuses)
        return sum(
            lic.fee_cents for lic in self._live() if lic.brand_id == brand_id and lic.status in statuses
        )

    async def status_distribution(self, brand_id: Optional[uuid.UUID] = None) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for lic in self._live():
            if brand_id and lic.brand_id != brand_id:
                continue
            counts[lic.status.value] = counts.get(lic.status.value, 0) + 1
        return counts


class InMemoryStatusHistoryRepository(StatusHistoryRepository):
    def __init__(self):
        self.entries: List[StatusHistoryEntry] = []

    async def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        self.entries.append(entry)
        return entry

    async def find_by_license(self, license_id: uuid.UUID) -> List[StatusHistoryEntry]:
        found = [e for e in self.entries if e.license_id == license_id]
        return sorted(found, key=lambda e: e.transitioned_at, reverse=True)


class InMemoryAuditLogRepository(AuditLogRepository):
    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def actions(self) -> List[str]:
        return [e.action for e in self.entries]


class InMemoryAmendmentRepository(AmendmentRepository):
    def __init__(self):
        self.items: Dict[uuid.UUID, Amendment] = {}

    async def save(self, amendment: Amendment) -> Amendment:
        self.items[amendment.id] = amendment
        return amendment

    async def find_by_id(self, amendment_id: uuid.UUID, for_update: bool = False) -> Optional[Amendment]:
        return self.items.get(amendment_id)

    async def find_by_license(self, license_id: uuid.UUID) -> List[Amendment]:
        found = [a for a in self.items.values() if a.license_id == license_id]
        return sorted(found, key=lambda a: a.amendment_number, reverse=True)

    async def find_pending_for_approver(self, approver_id: str) -> List[Amendment]:
        found = [
            a
            for a in self.items.values()
            if a.status == AmendmentStatus.PROPOSED
            and any(
                r.approver_id == approver_id and r.status == ApprovalStatus.PENDING
                for r in a.approvals
            )
        ]
        return sorted(found, key=lambda a: a.approval_deadline)

    async def find_overdue(self, now: datetime) -> List[Amendment]:
        return [
            a
            for a in self.items.values()
            if a.status == AmendmentStatus.PROPOSED and a.approval_deadline < now
        ]


class InMemoryExtensionRepository(ExtensionRepository):
    def __init__(self):
        self.items: Dict[uuid.UUID, Extension] = {}

    async def save(self, extension: Extension) -> Extension:
        self.items[extension.id] = extension
        return extension

    async def find_by_id(self, extension_id: uuid.UUID, for_update: bool = False) -> Optional[Extension]:
        return self.items.get(extension_id)

    async def find_by_licenses(self, license_ids, pending_only: bool = False) -> List[Extension]:
        ids = set(license_ids)
        found = [e for e in self.items.values() if e.license_id in ids]
        if pending_only:
            found = [e for e in found if e.status == ExtensionStatus.PENDING]
        return sorted(found, key=lambda e: e.requested_at, reverse=True)

    async def find_all(self) -> List[Extension]:
        return sorted(self.items.values(), key=lambda e: e.requested_at, reverse=True)

    async def find_overdue(self, now: datetime) -> List[Extension]:
        return [
            e
            for e in self.items.values()
            if e.status == ExtensionStatus.PENDING and e.respond_by < now
        ]


class InMemoryIdempotencyRepository(IdempotencyRepository):
    def __init__(self):
        self.items: Dict[str, IdempotencyRecord] = {}

    async def find(self, key: str) -> Optional[IdempotencyRecord]:
        return self.items.get(key)

    async def create(self, record: IdempotencyRecord) -> bool:
        if record.key in self.items:
            return False
        self.items[record.key] = record
        return True

    async def mark_processed(self, key: str, response_data: Dict[str, Any]) -> None:
        record = self.items.get(key)
        if record is not None:
            self.items[key] = record.processed(response_data)

    async def delete(self, key: str) -> None:
        self.items.pop(key, None)


def backdate(license: License, **changes) -> License:
    """Copy of a license with fields a factory would not let a test set."""
    return replace(license, **changes)
