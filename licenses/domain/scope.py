"""
License scope value objects.

A scope describes where and how a brand may use a licensed asset:
media channels, placements, territories, exclusivity terms, edit
permissions and attribution.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

GLOBAL_TERRITORY = "GLOBAL"

VALID_ASPECT_RATIOS = frozenset({"16:9", "1:1", "9:16", "4:5", "2:3", "4:3", "21:9"})


@dataclass(frozen=True)
class MediaScope:
    """Media channels a license covers."""

    digital: bool = False
    print: bool = False
    broadcast: bool = False
    ooh: bool = False

    FLAGS = ("digital", "print", "broadcast", "ooh")

    def selected(self) -> FrozenSet[str]:
        """Names of the selected media types."""
        return frozenset(name for name in self.FLAGS if getattr(self, name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MediaScope":
        data = data or {}
        return cls(**{name: bool(data.get(name, False)) for name in cls.FLAGS})

    def to_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in self.FLAGS}


@dataclass(frozen=True)
class PlacementScope:
    """Placements a license covers."""

    social: bool = False
    website: bool = False
    email: bool = False
    paid_ads: bool = False
    packaging: bool = False

    FLAGS = ("social", "website", "email", "paid_ads", "packaging")

    def selected(self) -> FrozenSet[str]:
        """Names of the selected placements."""
        return frozenset(name for name in self.FLAGS if getattr(self, name))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PlacementScope":
        data = data or {}
        return cls(**{name: bool(data.get(name, False)) for name in cls.FLAGS})

    def to_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in self.FLAGS}


@dataclass(frozen=True)
class GeographicScope:
    """
    Territory restriction.

    An empty territory list is unrestricted and behaves like GLOBAL.
    GLOBAL cannot be combined with specific country codes.
    """

    territories: Tuple[str, ...] = ()

    def __post_init__(self):
        """Normalise and validate territory codes."""
        codes = tuple(dict.fromkeys(t.strip().upper() for t in self.territories if t.strip()))
        object.__setattr__(self, "territories", codes)
        if GLOBAL_TERRITORY in codes and len(codes) > 1:
            raise ValueError("GLOBAL territory cannot be combined with specific territories")

    @property
    def is_global(self) -> bool:
        return not self.territories or GLOBAL_TERRITORY in self.territories

    def overlap_with(self, other: "GeographicScope") -> Tuple[str, ...]:
        """
        Territories shared with another scope.

        GLOBAL overlaps everything; the overlap is reported as the other
        side's concrete codes (or GLOBAL when both are global).
        """
        if self.is_global and other.is_global:
            return (GLOBAL_TERRITORY,)
        if self.is_global:
            return other.territories
        if other.is_global:
            return self.territories
        theirs = set(other.territories)
        return tuple(t for t in self.territories if t in theirs)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GeographicScope":
        if not data:
            return cls()
        return cls(territories=tuple(data.get("territories") or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {"territories": list(self.territories)}


@dataclass(frozen=True)
class ExclusivityScope:
    """Category exclusivity and competitor blocks."""

    category: Optional[str] = None
    competitors: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ExclusivityScope"]:
        if not data:
            return None
        return cls(
            category=data.get("category") or None,
            competitors=tuple(str(c) for c in data.get("competitors") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "competitors": list(self.competitors)}


@dataclass(frozen=True)
class CutdownScope:
    """Edit permissions for the licensed asset."""

    allow_edits: bool = False
    max_duration_seconds: Optional[int] = None
    aspect_ratios: Tuple[str, ...] = ()

    def invalid_aspect_ratios(self) -> Tuple[str, ...]:
        return tuple(r for r in self.aspect_ratios if r not in VALID_ASPECT_RATIOS)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CutdownScope"]:
        if not data:
            return None
        max_duration = data.get("max_duration_seconds")
        return cls(
            allow_edits=bool(data.get("allow_edits", False)),
            max_duration_seconds=int(max_duration) if max_duration is not None else None,
            aspect_ratios=tuple(data.get("aspect_ratios") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allow_edits": self.allow_edits,
            "max_duration_seconds": self.max_duration_seconds,
            "aspect_ratios": list(self.aspect_ratios),
        }


@dataclass(frozen=True)
class AttributionScope:
    """Credit requirements."""

    required: bool = False
    format: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["AttributionScope"]:
        if not data:
            return None
        return cls(required=bool(data.get("required", False)), format=data.get("format"))

    def to_dict(self) -> Dict[str, Any]:
        return {"required": self.required, "format": self.format}


@dataclass(frozen=True)
class LicenseScope:
    """Complete usage scope of a license."""

    media: MediaScope = field(default_factory=MediaScope)
    placement: PlacementScope = field(default_factory=PlacementScope)
    geographic: Optional[GeographicScope] = None
    exclusivity: Optional[ExclusivityScope] = None
    cutdowns: Optional[CutdownScope] = None
    attribution: Optional[AttributionScope] = None

    @property
    def territories(self) -> GeographicScope:
        """Geographic scope, unrestricted when absent."""
        return self.geographic or GeographicScope()

    def is_identical_usage(self, other: "LicenseScope") -> bool:
        """True when every active media and placement flag coincides."""
        return (
            self.media.selected() == other.media.selected()
            and self.placement.selected() == other.placement.selected()
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LicenseScope":
        """Build a scope from its JSON representation."""
        data = data or {}
        return cls(
            media=MediaScope.from_dict(data.get("media")),
            placement=PlacementScope.from_dict(data.get("placement")),
            geographic=GeographicScope.from_dict(data.get("geographic")) if data.get("geographic") else None,
            exclusivity=ExclusivityScope.from_dict(data.get("exclusivity")),
            cutdowns=CutdownScope.from_dict(data.get("cutdowns")),
            attribution=AttributionScope.from_dict(data.get("attribution")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON representation of the scope."""
        data: Dict[str, Any] = {
            "media": self.media.to_dict(),
            "placement": self.placement.to_dict(),
        }
        if self.geographic is not None:
            data["geographic"] = self.geographic.to_dict()
        if self.exclusivity is not None:
            data["exclusivity"] = self.exclusivity.to_dict()
        if self.cutdowns is not None:
            data["cutdowns"] = self.cutdowns.to_dict()
        if self.attribution is not None:
            data["attribution"] = self.attribution.to_dict()
        return data
