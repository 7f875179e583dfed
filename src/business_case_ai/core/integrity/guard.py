"""Offline validation and repair of persisted request/response pairs.

Used for audit and batch remediation over ``ApiLogStore`` entries; never on
the live request path. Repairs are mechanical and conservative: they only
remove clearly invalid syntax and never invent data.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from business_case_ai.core.integrity.log_store import ApiLogRecord, ApiLogStore

logger = logging.getLogger(__name__)

REPORT_WINDOW = 200

_TRAILING_COMMA_OBJECT = re.compile(r",\s*}")
_TRAILING_COMMA_ARRAY = re.compile(r",\s*]")


class CorruptionIssue(str, Enum):
    INVALID_JSON = "invalid_json"
    MISMATCH = "mismatch"


@dataclass
class CorruptionReport:
    """Outcome of comparing a stored payload with its original."""

    log_id: Optional[str]
    corrupted: bool
    issues: List[CorruptionIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_id": self.log_id,
            "corrupted": self.corrupted,
            "issues": [issue.value for issue in self.issues],
        }


def _strip_object_commas(body: str) -> str:
    return _TRAILING_COMMA_OBJECT.sub("}", body)


def _strip_array_commas(body: str) -> str:
    return _TRAILING_COMMA_ARRAY.sub("]", body)


def _strip_all_commas(body: str) -> str:
    return _strip_array_commas(_strip_object_commas(body))


_REPAIRS: List[Callable[[str], str]] = [
    _strip_object_commas,
    _strip_array_commas,
    _strip_all_commas,
]


class CorruptionGuard:
    """Validates, compares and repairs stored JSON payloads."""

    def __init__(self, log_store: Optional[ApiLogStore] = None) -> None:
        self.log_store = log_store

    @staticmethod
    def validate(body: Any) -> bool:
        """True if *body* parses as JSON."""
        if not isinstance(body, (str, bytes, bytearray)):
            return False
        try:
            json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return False
        return True

    def detect_corruption(
        self,
        stored: str,
        original: str,
        log_id: Optional[str] = None,
    ) -> CorruptionReport:
        issues = []
        if not self.validate(stored):
            issues.append(CorruptionIssue.INVALID_JSON)
        if stored != original:
            issues.append(CorruptionIssue.MISMATCH)
        return CorruptionReport(log_id=log_id, corrupted=bool(issues), issues=issues)

    @classmethod
    def repair(cls, body: str) -> str:
        """Return *body* if valid, else the first mechanical fix that parses.

        Falls back to *body* unchanged when no fix parses. Applying ``repair``
        to its own output returns the same string.
        """
        if cls.validate(body):
            return body
        for fix in _REPAIRS:
            candidate = fix(body)
            if candidate != body and cls.validate(candidate):
                return candidate
        return body

    def _require_store(self) -> ApiLogStore:
        if self.log_store is None:
            raise ValueError("CorruptionGuard was created without a log store")
        return self.log_store

    def _entry_issues(self, entry: ApiLogRecord) -> List[str]:
        issues = []
        if not self.validate(entry.request_json):
            issues.append("invalid_request_json")
        if not self.validate(entry.response_json):
            issues.append("invalid_response_json")
        if entry.corruption_detected:
            issues.append("corruption_detected")
        return issues

    def reprocess(
        self,
        callback: Callable[[ApiLogRecord, str], Any],
        limit: int = 100,
    ) -> int:
        """Hand every corrupted entry among the latest *limit* to *callback*.

        Args:
            callback: Called as ``callback(entry, repaired_response_json)``
            limit: Number of most recent entries to scan

        Returns:
            Number of corrupted entries found
        """
        corrupted = 0
        for entry in self._require_store().get_logs(limit):
            if not self._entry_issues(entry):
                continue
            corrupted += 1
            callback(entry, self.repair(entry.response_json))
        logger.info("Reprocessed %d corrupted audit entries (scanned up to %d)", corrupted, limit)
        return corrupted

    def integrity_report(self, log_id: Optional[str] = None) -> Dict[str, Any]:
        """Summarize the health of the latest audit entries, or of one entry."""
        store = self._require_store()
        if log_id is not None:
            entry = store.get(log_id)
            entries = [entry] if entry is not None else []
        else:
            entries = store.get_logs(REPORT_WINDOW)

        details = []
        corrupted = 0
        truncated = 0
        for entry in entries:
            issues = self._entry_issues(entry)
            if issues:
                corrupted += 1
            if entry.is_truncated:
                truncated += 1
            details.append(
                {
                    "log_id": entry.id,
                    "created_at": entry.created_at,
                    "is_truncated": entry.is_truncated,
                    "original_size": entry.original_size,
                    "issues": issues,
                }
            )

        return {
            "total": len(entries),
            "valid": len(entries) - corrupted,
            "corrupted": corrupted,
            "truncated": truncated,
            "entries": details,
        }
