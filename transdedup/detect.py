"""
Duplicate detection.

Groups an object's translations by (locale, property) and reports every
pair that occurs more than once. Detection is pure: it takes all its
inputs as parameters and returns new values, so it can run once per
fetched object without any shared state.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from transdedup.models import (
    CandidateKey,
    DuplicateGroup,
    DuplicateKey,
    ObjectType,
    TranslatableObject,
    Translation,
    TranslationCandidate,
)


def _group_by_key(translations: Iterable[Translation]) -> dict[DuplicateKey, list[Translation]]:
    seen: dict[DuplicateKey, list[Translation]] = {}
    for translation in translations:
        seen.setdefault(translation.key, []).append(translation)
    return seen


def find_duplicate_keys(translations: Iterable[Translation]) -> list[DuplicateKey]:
    """Return the keys that occur at least twice, in first-seen order."""
    return [key for key, items in _group_by_key(translations).items() if len(items) > 1]


def detect(
    translations: Sequence[Translation],
    object_type: str = "",
    object_id: str = "",
    object_name: str = "",
) -> list[DuplicateGroup]:
    """Find duplicate groups in one object's translations.

    Members keep the input order and the first member of every group is
    pre-selected as the default winner. Keys that occur only once never
    produce a group.

    Args:
        translations: The object's full translation list
        object_type: Plural of the owning type, copied onto each group
        object_id: Owning object id
        object_name: Owning object name

    Returns:
        One DuplicateGroup per colliding key, in first-seen key order
    """
    snapshot = tuple(translations)
    groups = []
    for key, items in _group_by_key(snapshot).items():
        if len(items) < 2:
            continue
        members = tuple(
            TranslationCandidate(
                key=CandidateKey(key.locale, key.property, t.value, position),
                value=t.value,
                selected_value=t.value if position == 0 else None,
            )
            for position, t in enumerate(items)
        )
        groups.append(DuplicateGroup(
            object_type=object_type,
            object_id=object_id,
            object_name=object_name,
            locale=key.locale,
            property=key.property,
            members=members,
            all_original_translations=snapshot,
        ))
    return groups


def detect_object(obj: TranslatableObject, object_type: ObjectType | str) -> list[DuplicateGroup]:
    """Run :func:`detect` on a fetched object."""
    plural = object_type.plural if isinstance(object_type, ObjectType) else object_type
    return detect(obj.translations, object_type=plural, object_id=obj.id, object_name=obj.name)


def index_by_object(groups: Iterable[DuplicateGroup]) -> dict[str, list[DuplicateGroup]]:
    """Map each object id to its groups, preserving first-seen order."""
    index: dict[str, list[DuplicateGroup]] = {}
    for group in groups:
        index.setdefault(group.object_id, []).append(group)
    return index
