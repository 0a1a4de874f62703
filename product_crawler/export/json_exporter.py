from __future__ import annotations

import json
from typing import List
from pathlib import Path

from ..engines.base import CrawlResult


class JSONExporter:
    """Writes ``[{"domain", "seed", "urls": [...]}, ...]``, one entry per seed."""

    def export(self, results: List[CrawlResult], path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in results], f, indent=2, ensure_ascii=False)
