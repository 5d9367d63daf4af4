# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: user-visible notices for one workspace.
Bounded append-only log; the browser shows these as toasts.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from collabtime.core.config import settings
from collabtime.models.domain import Notice, NoticeLevel


class NoticeRepository:
    """In-memory notice log (bounded ring buffer)."""

    def __init__(self, max_size: Optional[int] = None) -> None:
        self._notices: list[Notice] = []
        self._max_size = max_size or settings.MAX_NOTICES

    # ── Read ──

    def get_all(self, level: Optional[str] = None, limit: Optional[int] = None) -> list[Notice]:
        result = list(self._notices)
        if level:
            result = [n for n in result if n.level == level]
        if limit:
            result = result[-limit:]
        return result

    def latest(self) -> Optional[Notice]:
        return self._notices[-1] if self._notices else None

    def count(self) -> int:
        return len(self._notices)

    # ── Write ──

    def record(self, level: NoticeLevel, message: str) -> Notice:
        """Append a notice, trimming the oldest if over max."""
        notice = Notice(
            id=str(uuid.uuid4()),
            level=level,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._notices.append(notice)
        if len(self._notices) > self._max_size:
            del self._notices[: len(self._notices) - self._max_size]
        return notice

    def success(self, message: str) -> Notice:
        return self.record("success", message)

    def error(self, message: str) -> Notice:
        return self.record("error", message)

    def clear(self) -> None:
        self._notices.clear()
