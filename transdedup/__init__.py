"""
transdedup: find and fix duplicate translations on DHIS2 metadata.

Objects fetched from the DHIS2 Web API carry a list of translations, each
tagged with a locale and a property. When two entries share the same
(locale, property) pair the server shows one of them at random. This
package detects those collisions, lets a user pick one winner per
collision and writes back a conflict-free translation list.

Core components:
1. detect: group an object's translations by (locale, property)
2. selection: winner per group and objects marked for write-back
3. reconcile: replacement translation list for one object
4. batch: per-object write-back with failure isolation

License: MIT
"""

__version__ = "0.1.0"

from transdedup.models import (
    Translation,
    DuplicateKey,
    DuplicateGroup,
    TranslationCandidate,
    CandidateKey,
    GroupId,
)
from transdedup.detect import detect
from transdedup.reconcile import reconcile
from transdedup.selection import SelectionStore
from transdedup.batch import BatchReconciler, BatchResult

__all__ = [
    "Translation",
    "DuplicateKey",
    "DuplicateGroup",
    "TranslationCandidate",
    "CandidateKey",
    "GroupId",
    "detect",
    "reconcile",
    "SelectionStore",
    "BatchReconciler",
    "BatchResult",
]
