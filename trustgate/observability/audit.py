"""Decision log: trust decisions written through loguru to a JSON-lines file.

Each log owns one loguru file handler that only accepts records bound to it, so
several sessions can log to different files without seeing each other's events.
Rotation and retention are loguru's; rotated files sit next to the active one as
``<stem>.<timestamp><suffix>``.
"""

from __future__ import annotations

import json
from contextlib import suppress
from pathlib import Path
from typing import Any
from uuid import uuid4

from loguru import logger

from trustgate.core.types import DecisionEvent
from trustgate.observability.redaction import redact_payload
from trustgate.safety.glob import is_match

_LOG_KEY = "decision_log"
_EVENT_KEY = "decision"


class DecisionLog:
    """Append-only record of trust decisions with filtered lookup."""

    def __init__(
        self,
        path: Path,
        rotate_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 3,
    ) -> None:
        self.path = path
        self.rotate_bytes = rotate_bytes
        self.max_backups = max(0, max_backups)
        self._key = uuid4().hex
        self._handler_id: int | None = None

    def _accepts(self, record: dict[str, Any]) -> bool:
        return record["extra"].get(_LOG_KEY) == self._key

    def _ensure_handler(self) -> None:
        if self._handler_id is not None:
            return
        self._handler_id = logger.add(
            str(self.path),
            level="INFO",
            format="{message}",
            serialize=True,
            rotation=self.rotate_bytes,
            retention=self.max_backups,
            encoding="utf-8",
            filter=self._accepts,
        )

    def record(self, event: DecisionEvent) -> None:
        """Write one redacted decision."""
        self._ensure_handler()
        payload = redact_payload(event.to_dict())
        logger.bind(**{_LOG_KEY: self._key, _EVENT_KEY: payload}).info(
            "{} {} -> {}", payload["kind"], payload["subject"], payload["verdict"]
        )

    def close(self) -> None:
        if self._handler_id is None:
            return
        # The CLI resets loguru handlers wholesale, which may already have removed ours.
        with suppress(ValueError):
            logger.remove(self._handler_id)
        self._handler_id = None

    def files(self) -> list[Path]:
        """Rotated files oldest first, then the active file."""
        rotated = [
            p for p in self.path.parent.glob(f"{self.path.stem}.*{self.path.suffix}") if p != self.path
        ]
        rotated.sort(key=lambda p: (p.stat().st_mtime_ns, p.name))
        if self.path.exists():
            rotated.append(self.path)
        return rotated

    @staticmethod
    def _decode_line(raw: str) -> dict[str, Any] | None:
        try:
            entry = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(entry, dict):
            return None
        event = entry.get("record", {}).get("extra", {}).get(_EVENT_KEY)
        return event if isinstance(event, dict) else None

    def query(
        self,
        *,
        kind: str | None = None,
        verdict: str | None = None,
        subject: str | None = None,
        pattern: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Latest matching decisions, oldest first.

        Args:
            kind: ``command`` or ``tool``.
            verdict: ``allow``, ``ask`` or ``deny``.
            subject: Glob over the command or tool name, e.g. ``git *``.
            pattern: Trusted pattern that approved the command.
            limit: Maximum number of decisions returned.
        """
        if limit <= 0:
            return []

        rows: list[dict[str, Any]] = []
        for path in self.files():
            with path.open(encoding="utf-8", errors="replace") as handle:
                for raw in handle:
                    event = self._decode_line(raw)
                    if event is None:
                        continue
                    if kind and event.get("kind") != kind:
                        continue
                    if verdict and event.get("verdict") != verdict:
                        continue
                    if subject and not is_match(subject, str(event.get("subject", ""))):
                        continue
                    if pattern and event.get("attrs", {}).get("pattern") != pattern:
                        continue
                    rows.append(event)
        return rows[-limit:]
