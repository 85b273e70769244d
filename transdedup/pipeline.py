"""
Detection pass over the whole metadata corpus.

This module orchestrates one scan:
1. Enumerate translatable object types (fatal if this fails)
2. Fetch each type's objects (a failing type is skipped)
3. Detect duplicate groups per object
4. Report progress after every type

Design Philosophy:
- The scanner is configurable via ScanConfig (type allow/deny lists)
- A scan produces a ScanResult that can be saved to JSON and fixed later
- Progress callbacks for CLI integration
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from transdedup.api.base import ObjectSource
from transdedup.detect import detect_object, index_by_object
from transdedup.errors import FetchObjectsError
from transdedup.models import DuplicateGroup, ObjectType

logger = logging.getLogger(__name__)

# Type alias for progress callbacks
ProgressCallback = Callable[[str, float], None]


@dataclass
class ScanConfig:
    """Which object types a scan covers.

    Attributes:
        object_types: Only scan these plurals (None scans every type)
        exclude_types: Never scan these plurals
    """
    object_types: Optional[list[str]] = None
    exclude_types: list[str] = field(default_factory=list)

    def includes(self, object_type: ObjectType) -> bool:
        if object_type.plural in self.exclude_types:
            return False
        return self.object_types is None or object_type.plural in self.object_types


@dataclass
class ScanResult:
    """Result of one detection pass."""
    groups: list[DuplicateGroup] = field(default_factory=list)
    types_scanned: list[str] = field(default_factory=list)
    objects_scanned: int = 0
    failed_types: list[str] = field(default_factory=list)

    @property
    def objects_with_duplicates(self) -> int:
        return len(index_by_object(self.groups))

    @property
    def stats(self) -> dict:
        return {
            "types_scanned": len(self.types_scanned),
            "types_failed": len(self.failed_types),
            "objects_scanned": self.objects_scanned,
            "objects_with_duplicates": self.objects_with_duplicates,
            "duplicate_groups": len(self.groups),
        }

    def to_dict(self) -> dict:
        return {
            "groups": [g.to_dict() for g in self.groups],
            "types_scanned": self.types_scanned,
            "objects_scanned": self.objects_scanned,
            "failed_types": self.failed_types,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, d: dict) -> ScanResult:
        return cls(
            groups=[DuplicateGroup.from_dict(g) for g in d.get("groups", [])],
            types_scanned=list(d.get("types_scanned", [])),
            objects_scanned=d.get("objects_scanned", 0),
            failed_types=list(d.get("failed_types", [])),
        )

    @classmethod
    def from_json(cls, text: str) -> ScanResult:
        return cls.from_dict(json.loads(text))

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> ScanResult:
        return cls.from_json(path.read_text(encoding="utf-8"))


class DuplicateScanner:
    """Find duplicate translations across every translatable object type.

    Usage:
        scanner = DuplicateScanner(Dhis2Client(settings, password=...))
        result = scanner.scan()
        print(result.stats)
    """

    def __init__(
        self,
        source: ObjectSource,
        config: ScanConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        self.source = source
        self.config = config or ScanConfig()
        self.progress_callback = progress_callback or (lambda msg, pct: None)

    def scan(self) -> ScanResult:
        """Run one detection pass.

        Raises:
            FetchTypeError: if the type list can't be retrieved
        """
        # FetchTypeError propagates: no partial type list is usable
        types = [t for t in self.source.list_translatable_types() if self.config.includes(t)]
        result = ScanResult()

        for i, object_type in enumerate(types):
            try:
                objects = self.source.fetch_objects(object_type)
            except FetchObjectsError as e:
                logger.warning("Skipping %s: %s", object_type.plural, e)
                objects = []
                result.failed_types.append(object_type.plural)
            else:
                result.types_scanned.append(object_type.plural)

            for obj in objects:
                result.groups.extend(detect_object(obj, object_type))
            result.objects_scanned += len(objects)

            self.progress_callback(f"Scanned {object_type.plural}", (i + 1) / len(types))

        logger.info(
            "Scan complete: %d duplicate groups in %d objects",
            len(result.groups), result.objects_scanned,
        )
        return result
