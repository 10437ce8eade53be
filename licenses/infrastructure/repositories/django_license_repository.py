"""
Django implementation of LicenseRepository port.

This adapter converts between domain entities and Django ORM models.
"""
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from asgiref.sync import sync_to_async
from django.db.models import Count, Sum

from core.domain.value_objects import LicenseStatus, LicenseType
from licenses.domain.license import License
from licenses.domain.metadata import LicenseMetadata
from licenses.domain.scope import LicenseScope
from licenses.infrastructure.models import License as LicenseModel
from licenses.ports.license_repository import LicenseRepository


def _values(statuses: Iterable[LicenseStatus]) -> List[str]:
    return [status.value for status in statuses]


class DjangoLicenseRepository(LicenseRepository):
    """
    Django ORM implementation of LicenseRepository.

    This adapter:
    1. Converts Django models to domain entities
    2. Converts domain entities to Django models
    3. Implements repository interface
    """

    def _to_domain(self, model: LicenseModel) -> License:
        """
        Convert Django model to domain entity.

        Args:
            model: Django License model

        Returns:
            License domain entity
        """
        return License(
            id=model.id,
            ip_asset_id=model.ip_asset_id,
            brand_id=model.brand_id,
            license_type=LicenseType(model.license_type),
            status=LicenseStatus(model.status),
            start_date=model.start_date,
            end_date=model.end_date,
            fee_cents=model.fee_cents,
            rev_share_bps=model.rev_share_bps,
            scope=LicenseScope.from_dict(model.scope),
            created_at=model.created_at,
            updated_at=model.updated_at,
            auto_renew=model.auto_renew,
            payment_terms=model.payment_terms,
            billing_frequency=model.billing_frequency,
            project_id=model.project_id,
            parent_license_id=model.parent_license_id,
            signed_at=model.signed_at,
            amendment_count=model.amendment_count,
            metadata=LicenseMetadata.from_dict(model.metadata),
            created_by=model.created_by,
            deleted_at=model.deleted_at,
        )

    def _to_model(self, license: License) -> LicenseModel:
        """
        Convert domain entity to Django model.

        Args:
            license: License domain entity

        Returns:
            Django License model (unsaved changes applied)
        """
        fields = {
            "ip_asset_id": license.ip_asset_id,
            "brand_id": license.brand_id,
            "project_id": license.project_id,
            "parent_license_id": license.parent_license_id,
            "license_type": license.license_type.value,
            "status": license.status.value,
            "start_date": license.start_date,
            "end_date": license.end_date,
            "fee_cents": license.fee_cents,
            "rev_share_bps": license.rev_share_bps,
            "scope": license.scope.to_dict(),
            "auto_renew": license.auto_renew,
            "payment_terms": license.payment_terms,
            "billing_frequency": license.billing_frequency,
            "signed_at": license.signed_at,
            "amendment_count": license.amendment_count,
            "metadata": license.metadata.to_dict(),
            "created_by": license.created_by,
            "created_at": license.created_at,
            "updated_at": license.updated_at,
            "deleted_at": license.deleted_at,
        }
        model, created = LicenseModel.objects.get_or_create(id=license.id, defaults=fields)
        # Update if exists
        if not created:
            for name, value in fields.items():
                if name != "created_at":
                    setattr(model, name, value)
        return model

    def _live(self):
        return LicenseModel.objects.filter(deleted_at__isnull=True)

    @sync_to_async
    def save(self, license: License) -> License:
        """
        Save a license entity.

        Args:
            license: License entity to save

        Returns:
            Saved license entity
        """
        model = self._to_model(license)
        model.save()
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, license_id: uuid.UUID, for_update: bool = False) -> Optional[License]:
        """
        Find a license by ID.

        Args:
            license_id: License UUID
            for_update: Lock the row (call inside a transaction)

        Returns:
            License entity or None if not found
        """
        queryset = LicenseModel.objects.select_for_update() if for_update else LicenseModel.objects
        try:
            return self._to_domain(queryset.get(id=license_id))
        except LicenseModel.DoesNotExist:
            return None

    @sync_to_async
    def find_overlapping(
        self,
        ip_asset_id: uuid.UUID,
        start_date: datetime,
        end_date: datetime,
        statuses: Iterable[LicenseStatus],
        exclude_license_id: Optional[uuid.UUID] = None,
    ) -> List[License]:
        queryset = self._live().filter(
            ip_asset_id=ip_asset_id,
            status__in=_values(statuses),
            start_date__lte=end_date,
            end_date__gte=start_date,
        )
        if exclude_license_id:
            queryset = queryset.exclude(id=exclude_license_id)
        return [self._to_domain(model) for model in queryset]

    @sync_to_async
    def find_by_filters(
        self,
        brand_id: Optional[uuid.UUID] = None,
        ip_asset_id: Optional[uuid.UUID] = None,
        statuses: Optional[Iterable[LicenseStatus]] = None,
    ) -> List[License]:
        queryset = self._live()
        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)
        if ip_asset_id:
            queryset = queryset.filter(ip_asset_id=ip_asset_id)
        if statuses is not None:
            queryset = queryset.filter(status__in=_values(statuses))
        return [self._to_domain(model) for model in queryset.order_by("-created_at")]

    @sync_to_async
    def find_children(
        self,
        parent_license_id: uuid.UUID,
        statuses: Optional[Iterable[LicenseStatus]] = None,
    ) -> List[License]:
        queryset = self._live().filter(parent_license_id=parent_license_id)
        if statuses is not None:
            queryset = queryset.filter(status__in=_values(statuses))
        return [self._to_domain(model) for model in queryset]

    @sync_to_async
    def find_by_status(
        self,
        statuses: Iterable[LicenseStatus],
        end_date_from: Optional[datetime] = None,
        end_date_to: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
        auto_renew: Optional[bool] = None,
    ) -> List[License]:
        queryset = self._live().filter(status__in=_values(statuses))
        if end_date_from is not None:
            queryset = queryset.filter(end_date__gte=end_date_from)
        if end_date_to is not None:
            queryset = queryset.filter(end_date__lt=end_date_to)
        if created_before is not None:
            queryset = queryset.filter(created_at__lt=created_before)
        if auto_renew is not None:
            queryset = queryset.filter(auto_renew=auto_renew)
        return [self._to_domain(model) for model in queryset.order_by("end_date")]

    @sync_to_async
    def find_market_comparables(
        self,
        ip_asset_id: uuid.UUID,
        statuses: Iterable[LicenseStatus],
        created_after: datetime,
        exclude_license_id: uuid.UUID,
    ) -> List[License]:
        queryset = (
            self._live()
            .filter(ip_asset_id=ip_asset_id, status__in=_values(statuses), created_at__gte=created_after)
            .exclude(id=exclude_license_id)
        )
        return [self._to_domain(model) for model in queryset]

    @sync_to_async
    def sum_fees(self, brand_id: uuid.UUID, statuses: Iterable[LicenseStatus]) -> int:
        total = (
            self._live()
            .filter(brand_id=brand_id, status__in=_values(statuses))
            .aggregate(total=Sum("fee_cents"))["total"]
        )
        return total or 0

    @sync_to_async
    def status_distribution(self, brand_id: Optional[uuid.UUID] = None) -> Dict[str, int]:
        queryset = self._live()
        if brand_id:
            queryset = queryset.filter(brand_id=brand_id)
        rows = queryset.order_by().values("status").annotate(count=Count("id"))
        return {row["status"]: row["count"] for row in rows}
