"""
Django implementation of BrandRepository port.

This adapter converts between domain entities and Django ORM models.
"""

import uuid
from typing import Optional

from asgiref.sync import sync_to_async

from brands.domain.brand import Brand
from brands.infrastructure.models import Brand as BrandModel
from brands.ports.brand_repository import BrandRepository


class DjangoBrandRepository(BrandRepository):
    """
    Django ORM implementation of BrandRepository.

    This adapter:
    1. Converts Django models to domain entities
    2. Converts domain entities to Django models
    3. Implements repository interface
    """

    def _to_domain(self, model: BrandModel) -> Brand:
        """
        Convert Django model to domain entity.

        Args:
            model: Django Brand model

        Returns:
            Brand domain entity
        """
        return Brand(
            id=model.id,
            company_name=model.company_name,
            owner_user_id=model.owner_user_id,
            is_verified=model.is_verified,
            verification_status=model.verification_status,
            is_active=model.is_active,
            total_spent_cents=model.total_spent_cents,
            created_at=model.created_at,
            updated_at=model.updated_at,
            deleted_at=model.deleted_at,
        )

    def _to_model(self, brand: Brand) -> BrandModel:
        fields = {
            "company_name": brand.company_name,
            "owner_user_id": brand.owner_user_id,
            "is_verified": brand.is_verified,
            "verification_status": brand.verification_status,
            "is_active": brand.is_active,
            "total_spent_cents": brand.total_spent_cents,
            "created_at": brand.created_at,
            "updated_at": brand.updated_at,
            "deleted_at": brand.deleted_at,
        }
        model = BrandModel.objects.filter(id=brand.id).first()
        if model is None:
            return BrandModel(id=brand.id, **fields)
        # Update if exists
        for name, value in fields.items():
            if name != "created_at":
                setattr(model, name, value)
        return model

    @sync_to_async
    def save(self, brand: Brand) -> Brand:
        """
        Save a brand entity.

        Args:
            brand: Brand entity to save

        Returns:
            Saved brand entity
        """
        model = self._to_model(brand)
        model.save()
        return self._to_domain(model)

    @sync_to_async
    def find_by_id(self, brand_id: uuid.UUID) -> Optional[Brand]:
        """
        Find a brand by ID.

        Args:
            brand_id: Brand UUID

        Returns:
            Brand entity or None if not found
        """
        try:
            return self._to_domain(BrandModel.objects.get(id=brand_id))
        except BrandModel.DoesNotExist:
            return None
