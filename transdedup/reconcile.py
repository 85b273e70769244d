"""
Reconciliation of one object's translations.

Given a fresh copy of an object's translations and the duplicate groups
found for it, compute the replacement list: every entry for an affected
(locale, property) key is removed, then the chosen winner of each group
is appended. Entries for other keys are kept in their original order.

The affected keys come from the groups themselves (captured at detection
time), not from the fresh list. Duplicates that appeared on the server
after the scan are therefore left alone until the next scan.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from transdedup.models import DuplicateGroup, DuplicateKey, Translation


def affected_keys(groups: Iterable[DuplicateGroup]) -> set[DuplicateKey]:
    return {group.key for group in groups}


def winners(groups: Iterable[DuplicateGroup]) -> list[Translation]:
    """The replacement translations for ``groups``, one per selected group."""
    result = []
    for group in groups:
        chosen = group.selected
        # No selection drops the key from the object
        if chosen is None:
            continue
        result.append(Translation(group.locale, group.property, chosen.selected_value))
    return result


def reconcile(
    fresh_original: Sequence[Translation],
    groups_for_object: Sequence[DuplicateGroup],
) -> list[Translation]:
    """Compute the conflict-free translation list for one object.

    Args:
        fresh_original: The object's current translations
        groups_for_object: Duplicate groups detected for this object

    Returns:
        Retained translations in original order, followed by one winner
        per selected group in group order

    Example:
        >>> from transdedup.detect import detect
        >>> original = [Translation("en", "NAME", "A"), Translation("en", "NAME", "B"),
        ...             Translation("fr", "NAME", "C")]
        >>> [group] = detect(original, object_id="x")
        >>> reconcile(original, [group])
        [Translation(locale='fr', property='NAME', value='C'), Translation(locale='en', property='NAME', value='A')]
    """
    keys = affected_keys(groups_for_object)
    retained = [t for t in fresh_original if t.key not in keys]
    return retained + winners(groups_for_object)
