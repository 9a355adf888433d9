from __future__ import annotations

import json
from typing import Any, Dict, IO, Optional
from pathlib import Path


class JSONLinesExporter:
    """
    Appends one JSON object per line as records arrive, so a crashed run
    keeps everything written so far. The summary goes to a separate file.
    """

    def __init__(self, output_path: str, stats_path: Optional[str] = None) -> None:
        self.output_path = output_path
        self.stats_path = stats_path
        self._fh: Optional[IO[str]] = None

    def _handle(self) -> IO[str]:
        if self._fh is None:
            Path(self.output_path).parent.mkdir(parents=True, exist_ok=True)
            self._fh = open(self.output_path, "a", encoding="utf-8")
        return self._fh

    def write(self, record: Dict[str, Any]) -> None:
        fh = self._handle()
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")
        fh.flush()

    def write_summary(self, summary: Dict[str, Any]) -> None:
        if not self.stats_path:
            return
        Path(self.stats_path).parent.mkdir(parents=True, exist_ok=True)
        with open(self.stats_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, ensure_ascii=False)

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
