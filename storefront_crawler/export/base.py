from __future__ import annotations

from typing import Any, Dict, Protocol


class RecordSink(Protocol):
    """Append-only record store plus a one-shot run summary."""

    def write(self, record: Dict[str, Any]) -> None:
        ...

    def write_summary(self, summary: Dict[str, Any]) -> None:
        ...

    def close(self) -> None:
        ...
