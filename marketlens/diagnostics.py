"""Per-request diagnostic trail."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from loguru import logger


class DiagnosticTrail:
    """Ordered, timestamped stage events for a single request.

    One instance is created per request and handed to every stage. Events
    are always mirrored to the log; they are only returned to the caller
    when the request asked for diagnostics.
    """

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._lines: List[str] = []

    def record(self, message: str, **extra: Any) -> str:
        stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        line = f"[{stamp}] {message}"
        if extra:
            line += " " + json.dumps(extra, default=str, ensure_ascii=False)
        logger.debug(line)
        self._lines.append(line)
        return line

    def dump(self) -> Optional[List[str]]:
        return list(self._lines) if self.enabled else None

    def __len__(self) -> int:
        return len(self._lines)
