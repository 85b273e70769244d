"""
Core data models for transdedup.

These models describe translations as the remote metadata API returns
them, plus the duplicate report built on top of them.

Design Philosophy:
- Keys are explicit value types, never formatted strings: a locale or
  property containing a hyphen can't collide with another pair
- Translations are frozen: a fetched value is never edited in place
- Serializable: groups can be converted to/from JSON so a scan report
  can be saved and fixed later
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional


@dataclass(frozen=True)
class DuplicateKey:
    """The (locale, property) pair two translations collide on."""
    locale: str
    property: str

    def __str__(self) -> str:
        return f"{self.locale}/{self.property}"


@dataclass(frozen=True)
class Translation:
    """One localized value for one property of one object."""
    locale: str
    property: str
    value: str

    @property
    def key(self) -> DuplicateKey:
        return DuplicateKey(self.locale, self.property)

    def to_dict(self) -> dict:
        return {"locale": self.locale, "property": self.property, "value": self.value}

    @classmethod
    def from_dict(cls, d: dict) -> Translation:
        return cls(locale=d["locale"], property=d["property"], value=d.get("value", ""))


@dataclass(frozen=True)
class CandidateKey:
    """Synthetic identity of one colliding translation.

    ``position`` is the member's index within its group so that two
    members carrying the same text remain distinct candidates.
    """
    locale: str
    property: str
    value: str
    position: int = 0


@dataclass(frozen=True)
class GroupId:
    """Identity of a duplicate group, stable across repeated renders."""
    object_id: str
    locale: str
    property: str


@dataclass(frozen=True)
class TranslationCandidate:
    """A colliding translation that may be chosen as the winner.

    Attributes:
        key: Synthetic identity of this candidate
        value: The translation text
        selected_value: ``value`` when chosen, ``None`` otherwise
    """
    key: CandidateKey
    value: str
    selected_value: Optional[str] = None

    @property
    def is_selected(self) -> bool:
        return self.selected_value is not None and self.selected_value == self.value

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "position": self.key.position,
            "selected": self.is_selected,
        }


@dataclass(frozen=True)
class ObjectType:
    """A translatable object type (schema) exposed by the remote API."""
    plural: str
    relative_api_endpoint: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> ObjectType:
        return cls(
            plural=d["plural"],
            relative_api_endpoint=d.get("relativeApiEndpoint", ""),
        )


@dataclass
class TranslatableObject:
    """An object as listed by the remote API, with its translations."""
    id: str
    name: str = ""
    translations: list[Translation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> TranslatableObject:
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            translations=[Translation.from_dict(t) for t in d.get("translations") or []],
        )


@dataclass(frozen=True)
class DuplicateGroup:
    """All translations on one object sharing one DuplicateKey.

    Groups are immutable; changing the selection produces a new group
    via :meth:`with_selection`.

    Attributes:
        object_type: Plural of the owning object's type (e.g. 'dataElements')
        object_id: Owning object id
        object_name: Owning object display name
        locale: Locale shared by all members
        property: Property shared by all members
        members: Colliding translations, in source order (at least two)
        all_original_translations: Snapshot of the object's whole translation
            list at detection time
    """
    object_type: str
    object_id: str
    object_name: str
    locale: str
    property: str
    members: tuple[TranslationCandidate, ...]
    all_original_translations: tuple[Translation, ...] = ()

    def __post_init__(self):
        if len(self.members) < 2:
            raise ValueError(
                f"A duplicate group needs at least 2 members, got {len(self.members)} "
                f"for {self.object_id} {self.locale}/{self.property}"
            )
        if sum(1 for m in self.members if m.is_selected) > 1:
            raise ValueError(f"More than one selected member in group {self.group_id}")

    @property
    def key(self) -> DuplicateKey:
        return DuplicateKey(self.locale, self.property)

    @property
    def group_id(self) -> GroupId:
        return GroupId(self.object_id, self.locale, self.property)

    @property
    def selected(self) -> Optional[TranslationCandidate]:
        for member in self.members:
            if member.is_selected:
                return member
        return None

    def candidate(self, key: CandidateKey) -> Optional[TranslationCandidate]:
        for member in self.members:
            if member.key == key:
                return member
        return None

    def with_selection(self, key: Optional[CandidateKey]) -> DuplicateGroup:
        """Return a copy where only ``key`` is selected (none if ``key`` is None)."""
        members = tuple(
            replace(m, selected_value=m.value if m.key == key else None)
            for m in self.members
        )
        return replace(self, members=members)

    def to_dict(self) -> dict:
        return {
            "object_type": self.object_type,
            "object_id": self.object_id,
            "object_name": self.object_name,
            "locale": self.locale,
            "property": self.property,
            "members": [m.to_dict() for m in self.members],
            "all_original_translations": [t.to_dict() for t in self.all_original_translations],
        }

    @classmethod
    def from_dict(cls, d: dict) -> DuplicateGroup:
        locale, prop = d["locale"], d["property"]
        members = []
        for i, m in enumerate(d["members"]):
            key = CandidateKey(locale, prop, m["value"], m.get("position", i))
            members.append(TranslationCandidate(
                key=key,
                value=m["value"],
                selected_value=m["value"] if m.get("selected") else None,
            ))
        return cls(
            object_type=d.get("object_type", ""),
            object_id=d["object_id"],
            object_name=d.get("object_name", ""),
            locale=locale,
            property=prop,
            members=tuple(members),
            all_original_translations=tuple(
                Translation.from_dict(t) for t in d.get("all_original_translations", [])
            ),
        )


def translations_from_dicts(items: Iterable[dict]) -> list[Translation]:
    """Convert raw API translation dicts into Translation objects."""
    return [Translation.from_dict(t) for t in items or []]
