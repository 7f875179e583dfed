"""Append-only store for LLM request/response audit records.

Records are kept as JSON lines. Payloads are size-capped before they are
written: requests at 20 KB, responses at 1 MB. An oversized payload is
trimmed to the longest prefix that still closes into valid JSON and flagged
``is_truncated``.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from filelock import FileLock
from ulid import ULID

if TYPE_CHECKING:
    from business_case_ai.core.llm.hooks import TransportHooks
    from business_case_ai.core.llm.models import LLMRequest, ResponseEnvelope

logger = logging.getLogger(__name__)

REQUEST_SIZE_LIMIT = 20 * 1024
RESPONSE_SIZE_LIMIT = 1024 * 1024
LOCK_ACQUISITION_TIMEOUT = 5

# Candidate cut points examined when trimming an oversized payload
_MAX_TRIM_CANDIDATES = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ApiLogRecord:
    """One persisted request/response pair."""

    request_json: str
    response_json: str
    id: str = field(default_factory=lambda: str(ULID()))
    user_id: int = 0
    is_truncated: bool = False
    original_size: int = 0
    corruption_detected: bool = False
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    created_at: str = field(default_factory=lambda: _utcnow().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiLogRecord":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def _trim_candidates(prefix: str) -> List[str]:
    """Valid-looking JSON texts obtained by cutting *prefix* and closing brackets.

    A cut is safe right after a closing bracket or right before a comma, since
    the value before either is complete. Latest cuts come first.
    """
    stack: List[str] = []
    cuts: List[Tuple[int, str]] = []
    in_string = False
    escape = False
    for index, ch in enumerate(prefix):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            if stack:
                stack.pop()
            cuts.append((index + 1, "".join(reversed(stack))))
        elif ch == "," and stack:
            cuts.append((index, "".join(reversed(stack))))
    return [prefix[:cut] + closers for cut, closers in reversed(cuts[-_MAX_TRIM_CANDIDATES:])]


def encode_capped(payload: Any, limit: int) -> Tuple[str, bool, int]:
    """Serialize *payload* to JSON no longer than *limit* bytes.

    Args:
        payload: JSON-serializable value (a pre-encoded str is used as is)
        limit: Maximum size of the result in UTF-8 bytes

    Returns:
        Tuple of (json_text, is_truncated, original_size_in_bytes)
    """
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False, default=str)
    encoded = text.encode("utf-8")
    original_size = len(encoded)
    if original_size <= limit:
        return text, False, original_size

    prefix = encoded[:limit].decode("utf-8", errors="ignore")
    for candidate in _trim_candidates(prefix):
        if len(candidate.encode("utf-8")) > limit:
            continue
        try:
            json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return candidate, True, original_size

    preview_bytes = max(0, min(1000, limit // 2))
    placeholder = json.dumps(
        {
            "truncated": True,
            "original_size": original_size,
            "preview": encoded[:preview_bytes].decode("utf-8", errors="ignore"),
        },
        ensure_ascii=False,
    )
    return placeholder, True, original_size


def _decodes_to(text: str, original: Any) -> bool:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return False
    if isinstance(original, str):
        try:
            original = json.loads(original)
        except json.JSONDecodeError:
            return False
    return decoded == json.loads(json.dumps(original, default=str))


class ApiLogStore:
    """JSONL-backed store of ``ApiLogRecord`` entries.

    Writes are serialized with a file lock; ``purge`` rewrites the file
    atomically (temp file + rename).
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._pending_request: Optional[Dict[str, Any]] = None

    @property
    def _lock_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".lock")

    def save(
        self,
        request: Any,
        response: Any,
        *,
        user_id: int = 0,
        usage: Optional[Dict[str, Any]] = None,
    ) -> ApiLogRecord:
        """Cap, check and persist a request/response pair."""
        request_json, request_truncated, _ = encode_capped(request, REQUEST_SIZE_LIMIT)
        response_json, response_truncated, response_size = encode_capped(response, RESPONSE_SIZE_LIMIT)
        is_truncated = request_truncated or response_truncated

        corruption = False
        if not request_truncated and not _decodes_to(request_json, request):
            corruption = True
        if not response_truncated and not _decodes_to(response_json, response):
            corruption = True
        if corruption:
            logger.warning("Audit payload did not survive a JSON round trip")

        usage = usage or {}
        prompt_tokens = int(usage.get("input_tokens") or usage.get("prompt_tokens") or 0)
        completion_tokens = int(usage.get("output_tokens") or usage.get("completion_tokens") or 0)
        record = ApiLogRecord(
            request_json=request_json,
            response_json=response_json,
            user_id=user_id,
            is_truncated=is_truncated,
            original_size=response_size,
            corruption_detected=corruption,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=int(usage.get("total_tokens") or prompt_tokens + completion_tokens),
        )
        self.append(record)
        return record

    def append(self, record: ApiLogRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(self._lock_path, timeout=LOCK_ACQUISITION_TIMEOUT):
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.to_dict(), ensure_ascii=False))
                handle.write("\n")

    def _read_all(self) -> List[ApiLogRecord]:
        if not self.path.exists():
            return []
        records = []
        with self.path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(ApiLogRecord.from_dict(json.loads(line)))
                except (json.JSONDecodeError, TypeError) as exc:
                    logger.warning("Skipping unreadable audit line %d in %s: %s", line_no, self.path, exc)
        return records

    def get_logs(self, limit: int = 50) -> List[ApiLogRecord]:
        """Most recent records first."""
        records = sorted(self._read_all(), key=lambda r: r.created_at, reverse=True)
        return records[: max(0, limit)]

    def get(self, log_id: str) -> Optional[ApiLogRecord]:
        for record in self._read_all():
            if record.id == log_id:
                return record
        return None

    def purge(self, days: int = 30) -> int:
        """Delete records older than *days*. Returns the number removed."""
        if not self.path.exists():
            return 0
        cutoff = (_utcnow() - timedelta(days=days)).isoformat()
        with FileLock(self._lock_path, timeout=LOCK_ACQUISITION_TIMEOUT):
            records = self._read_all()
            keep = [r for r in records if r.created_at >= cutoff]
            removed = len(records) - len(keep)
            if removed:
                fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".api_logs.", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        for record in keep:
                            handle.write(json.dumps(record.to_dict(), ensure_ascii=False))
                            handle.write("\n")
                    os.replace(temp_path, self.path)
                except Exception:
                    try:
                        os.unlink(temp_path)
                    except OSError:
                        pass
                    raise
        logger.info("Purged %d audit records older than %d days", removed, days)
        return removed

    # ------------------------------------------------------------------
    # Transport subscription
    # ------------------------------------------------------------------

    def attach(self, hooks: "TransportHooks", user_id: int = 0) -> None:
        """Record every successful transport call in this store."""

        def on_request(request: "LLMRequest", attempt: int) -> None:
            self._pending_request = request.to_payload()

        def on_response(envelope: "ResponseEnvelope", attempt: int) -> None:
            usage = envelope.raw.get("usage") if isinstance(envelope.raw, dict) else None
            self.save(
                self._pending_request or {},
                envelope.raw or {"output_text": envelope.output_text},
                user_id=user_id,
                usage=usage if isinstance(usage, dict) else None,
            )
            self._pending_request = None

        hooks.on_request_sent(on_request)
        hooks.on_response_received(on_response)
