"""
Value objects for the domain.

Value objects are immutable objects that are defined by their attributes
rather than their identity. They have no identity and are compared by value.
"""
from abc import ABC
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ValueObject(ABC):
    """
    Base class for value objects.

    Value objects are immutable and compared by value.
    """

    def __eq__(self, other):
        """Compare value objects by their attributes."""
        if not isinstance(other, self.__class__):
            return False
        return self.__dict__ == other.__dict__

    def __hash__(self):
        """Make value objects hashable."""
        return hash(tuple(sorted(self.__dict__.items())))


class LicenseStatus(Enum):
    """Lifecycle status of a license."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"
    RENEWED = "RENEWED"
    TERMINATED = "TERMINATED"
    DISPUTED = "DISPUTED"
    CANCELED = "CANCELED"
    SUSPENDED = "SUSPENDED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        """Return status as string."""
        return self.value


class LicenseType(Enum):
    """Exclusivity tier of a license."""

    EXCLUSIVE = "EXCLUSIVE"
    NON_EXCLUSIVE = "NON_EXCLUSIVE"
    EXCLUSIVE_TERRITORY = "EXCLUSIVE_TERRITORY"

    def __str__(self) -> str:
        return self.value

    @property
    def is_exclusive(self) -> bool:
        """True for both exclusive tiers."""
        return self in (LicenseType.EXCLUSIVE, LicenseType.EXCLUSIVE_TERRITORY)


class Role(Enum):
    """Closed set of actor roles."""

    BRAND = "BRAND"
    CREATOR = "CREATOR"
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"

    def __str__(self) -> str:
        return self.value


class AssetType(Enum):
    """Kinds of IP asset that can be licensed."""

    PHOTO = "PHOTO"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    DESIGN = "DESIGN"
    WRITTEN = "WRITTEN"
    THREE_D = "THREE_D"
    OTHER = "OTHER"

    def __str__(self) -> str:
        return self.value


class AssetStatus(Enum):
    """Publication status of an IP asset."""

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_licensable(self) -> bool:
        return self in (AssetStatus.PUBLISHED, AssetStatus.APPROVED)


class OwnershipType(Enum):
    """How a creator came to hold a share of an asset."""

    PRIMARY = "PRIMARY"
    CONTRIBUTOR = "CONTRIBUTOR"
    DERIVATIVE = "DERIVATIVE"
    TRANSFERRED = "TRANSFERRED"

    def __str__(self) -> str:
        return self.value


SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class Actor(ValueObject):
    """The user (or scheduler) on whose behalf an operation runs."""

    user_id: str
    role: Role

    def __post_init__(self):
        """Validate actor."""
        if not self.user_id:
            raise ValueError("Actor user id is required")
        if not isinstance(self.role, Role):
            raise ValueError(f"Invalid actor role: {self.role}")

    @classmethod
    def system(cls) -> "Actor":
        """Actor used by scheduled sweeps."""
        return cls(user_id=SYSTEM_ACTOR_ID, role=Role.SYSTEM)

    @property
    def is_system(self) -> bool:
        return self.role == Role.SYSTEM

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __str__(self) -> str:
        return f"{self.role.value.lower()}:{self.user_id}"
