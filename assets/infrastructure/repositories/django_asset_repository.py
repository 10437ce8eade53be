"""
Django implementation of AssetRepository port.

This adapter converts between domain entities and Django ORM models.
"""
import uuid
from typing import List, Optional

from asgiref.sync import sync_to_async
from django.utils import timezone

from assets.domain.asset import Creator, IpAsset, Ownership
from assets.infrastructure.models import IpAsset as IpAssetModel
from assets.infrastructure.models import IpOwnership
from assets.ports.asset_repository import AssetRepository
from core.domain.value_objects import AssetStatus, AssetType, OwnershipType


class DjangoAssetRepository(AssetRepository):
    """
    Django ORM implementation of AssetRepository.

    This adapter:
    1. Converts Django models to domain entities
    2. Reads ownership records together with their creators
    3. Takes the per-asset row lock
    """

    def _to_domain(self, model: IpAssetModel) -> IpAsset:
        return IpAsset(
            id=model.id,
            title=model.title,
            asset_type=AssetType(model.asset_type),
            status=AssetStatus(model.status),
            created_at=model.created_at,
            parent_asset_id=model.parent_asset_id,
            deleted_at=model.deleted_at,
        )

    def _ownership_to_domain(self, model: IpOwnership) -> Ownership:
        creator = model.creator
        return Ownership(
            id=model.id,
            ip_asset_id=model.ip_asset_id,
            creator=Creator(
                id=creator.id,
                user_id=creator.user_id,
                display_name=creator.display_name,
                is_active=creator.is_active,
                deleted_at=creator.deleted_at,
            ),
            share_bps=model.share_bps,
            ownership_type=OwnershipType(model.ownership_type),
            start_date=model.start_date,
            end_date=model.end_date,
            disputed=model.disputed,
            resolved_at=model.resolved_at,
            contract_reference=model.contract_reference,
            legal_doc_url=model.legal_doc_url,
        )

    @sync_to_async
    def save(self, asset: IpAsset) -> IpAsset:
        """
        Save an asset.

        Args:
            asset: Asset entity to save

        Returns:
            Saved asset entity
        """
        model, _ = IpAssetModel.objects.update_or_create(
            id=asset.id,
            defaults={
                "title": asset.title,
                "asset_type": asset.asset_type.value,
                "status": asset.status.value,
                "parent_asset_id": asset.parent_asset_id,
                "created_at": asset.created_at,
                "deleted_at": asset.deleted_at,
            },
        )
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, asset_id: uuid.UUID) -> Optional[IpAsset]:
        try:
            return self._to_domain(IpAssetModel.objects.get(id=asset_id))
        except IpAssetModel.DoesNotExist:
            return None

    @sync_to_async
    def find_ownerships(self, asset_id: uuid.UUID) -> List[Ownership]:
        models = IpOwnership.objects.filter(ip_asset_id=asset_id).select_related("creator")
        return [self._ownership_to_domain(model) for model in models.order_by("start_date")]

    @sync_to_async
    def lock(self, asset_id: uuid.UUID) -> None:
        """
        Lock the asset row until the surrounding transaction ends.

        Must be called inside ``async_transaction``.
        """
        list(IpAssetModel.objects.select_for_update().filter(id=asset_id).values_list("id", flat=True))

    @sync_to_async
    def find_asset_ids_owned_by(self, user_id: str) -> List[uuid.UUID]:
        now = timezone.now()
        ids = (
            IpOwnership.objects.filter(
                creator__user_id=user_id,
                creator__deleted_at__isnull=True,
                start_date__lte=now,
            )
            .exclude(end_date__lte=now)
            .values_list("ip_asset_id", flat=True)
            .distinct()
        )
        return list(ids)
