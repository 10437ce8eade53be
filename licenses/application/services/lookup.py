"""
Aggregate lookups that raise NotFound errors.
"""
import uuid

from assets.ports.asset_repository import AssetRepository
from core.domain.exceptions import (
    AmendmentNotFoundError,
    ExtensionNotFoundError,
    LicenseNotFoundError,
)
from licenses.domain.amendment import Amendment
from licenses.domain.extension import Extension
from licenses.domain.license import License
from licenses.ports.amendment_repository import AmendmentRepository
from licenses.ports.extension_repository import ExtensionRepository
from licenses.ports.license_repository import LicenseRepository


async def load_license(
    repository: LicenseRepository, license_id: uuid.UUID, for_update: bool = False
) -> License:
    """Load a non-deleted license or raise LicenseNotFoundError."""
    license = await repository.find_by_id(license_id, for_update=for_update)
    if license is None or license.is_deleted:
        raise LicenseNotFoundError(f"License {license_id} not found")
    return license


async def load_amendment(
    repository: AmendmentRepository, amendment_id: uuid.UUID, for_update: bool = False
) -> Amendment:
    amendment = await repository.find_by_id(amendment_id, for_update=for_update)
    if amendment is None:
        raise AmendmentNotFoundError()
    return amendment


async def load_extension(
    repository: ExtensionRepository, extension_id: uuid.UUID, for_update: bool = False
) -> Extension:
    extension = await repository.find_by_id(extension_id, for_update=for_update)
    if extension is None:
        raise ExtensionNotFoundError()
    return extension


async def lock_license_and_asset(
    license_repository: LicenseRepository,
    asset_repository: AssetRepository,
    license_id: uuid.UUID,
) -> License:
    """
    Lock the license's asset, then the license itself.

    Asset before license is the order license creation takes its lock in.
    """
    found = await load_license(license_repository, license_id)
    await asset_repository.lock(found.ip_asset_id)
    return await load_license(license_repository, license_id, for_update=True)
