"""
Validation System for toolshelf

This module provides the three validation layers applied to shelf configurations:

- Snapshot schema validation: raw JSON checked against snapshot-schema.json
  with jsonschema before anything is deserialized
- Structural validation: group list present, group names non-empty and unique,
  item lists present
- Reference validation: advisory report of items whose external handles
  (assets, scenes) no longer resolve

None of these mutate the shelf. Structural and reference problems are reported
to the caller, who decides whether to act on them.
"""

import json
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jsonschema

from .group import ToolShelf
from .items import HandleResolver, LinkOpenerItem, ToolItem

logger = logging.getLogger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "snapshot-schema.json")

_schema_cache: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """
    Result container for validation operations.

    Provides structured feedback about validation success/failure
    with detailed error and warning messages.
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error message and mark result as invalid"""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning message"""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult") -> None:
        """Merge another validation result into this one"""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False

    @property
    def message(self) -> str:
        return "; ".join(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.is_valid, "message": self.message, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass
class ReferenceProblem:
    """One item whose external reference does not resolve"""
    group_name: str
    item: ToolItem
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"group_name": self.group_name, "item_type": self.item.TYPE_TAG, "message": self.message}


@dataclass
class ReferenceReport:
    """Advisory report built once per load"""
    details: List[ReferenceProblem] = field(default_factory=list)

    @property
    def invalid_count(self) -> int:
        return len(self.details)

    def to_dict(self) -> Dict[str, Any]:
        return {"invalid_count": self.invalid_count, "details": [problem.to_dict() for problem in self.details]}


def load_snapshot_schema() -> Dict[str, Any]:
    """Load (once) the JSON schema describing a persisted snapshot."""
    global _schema_cache
    if _schema_cache is None:
        with open(SCHEMA_PATH, "r", encoding="utf-8") as schema_file:
            _schema_cache = json.load(schema_file)
    return _schema_cache


def validate_snapshot_data(data: Any) -> ValidationResult:
    """
    Check raw snapshot data against the snapshot schema.

    Args:
        data: Decoded JSON document

    Returns:
        ValidationResult listing every schema violation with its location
    """
    result = ValidationResult(is_valid=True)
    validator = jsonschema.Draft7Validator(load_snapshot_schema())
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        result.add_error(f"{location}: {error.message}")
    return result


def validate_collection(shelf: Optional[ToolShelf]) -> ValidationResult:
    """
    Perform structural validation of a shelf.

    Checks, in order: shelf present, group list present, duplicate group names
    (exact match, each offending name listed once), every group named, every
    group holding an item list. Malformed link addresses are reported as
    warnings only.

    Args:
        shelf: Shelf to validate

    Returns:
        ValidationResult; `message` joins all errors

    Example:
        >>> shelf = ToolShelf([Group("A"), Group("B"), Group("A")])
        >>> validate_collection(shelf).message
        'Duplicate group names: A'
    """
    result = ValidationResult(is_valid=True)

    if shelf is None:
        result.add_error("Configuration data is empty")
        return result

    if shelf.groups is None:
        result.add_error("Group list is missing")
        return result

    name_counts = Counter(group.name for group in shelf.groups)
    duplicates = [name for name, count in name_counts.items() if count > 1]
    if duplicates:
        result.add_error(f"Duplicate group names: {', '.join(str(name) for name in duplicates)}")

    for index, group in enumerate(shelf.groups):
        if not group.name:
            result.add_error(f"Group {index + 1} has an empty name")

        if group.items is None:
            result.add_error(f"Group '{group.name}' has no item list")
            continue

        for item_index, item in enumerate(group.items):
            if isinstance(item, LinkOpenerItem) and not item.has_valid_url():
                result.add_warning(
                    f"Group '{group.name}': item {item_index + 1} has an invalid link address '{item.url}'"
                )

    return result


def collect_reference_problems(shelf: Optional[ToolShelf], resolver: Optional[HandleResolver] = None) -> ReferenceReport:
    """
    Build the advisory report of items with unresolved external references.

    Args:
        shelf: Shelf to inspect
        resolver: Optional callable telling whether a handle still resolves

    Returns:
        ReferenceReport with one entry per invalid item
    """
    report = ReferenceReport()
    if shelf is None or shelf.groups is None:
        return report

    for group in shelf.groups:
        if group.items is None:
            continue
        for item in group.items:
            if not item.HAS_REFERENCES:
                continue
            if not item.is_valid(resolver):
                problem = ReferenceProblem(group.name, item, item.describe_problem(resolver))
                report.details.append(problem)
                logger.warning(f"Reference check failed: {problem.message} (group: '{group.name}')")

    if report.invalid_count:
        logger.warning(f"Reference check finished: {report.invalid_count} invalid reference(s)")
    else:
        logger.info("Reference check finished: all references are valid")
    return report
