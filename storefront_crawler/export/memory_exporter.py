from __future__ import annotations

from typing import Any, Dict, List, Optional


class MemoryExporter:
    """Keeps records in memory; used by the REST API and in tests."""

    def __init__(self, output_path: Optional[str] = None, stats_path: Optional[str] = None) -> None:
        self.products: List[Dict[str, Any]] = []
        self.failures: List[Dict[str, Any]] = []
        self.summary: Optional[Dict[str, Any]] = None
        self.closed = False

    @property
    def records(self) -> List[Dict[str, Any]]:
        return self.products + self.failures

    def write(self, record: Dict[str, Any]) -> None:
        if record.get("#failed"):
            self.failures.append(record)
        else:
            self.products.append(record)

    def write_summary(self, summary: Dict[str, Any]) -> None:
        self.summary = dict(summary)

    def close(self) -> None:
        self.closed = True
