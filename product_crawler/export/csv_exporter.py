from __future__ import annotations

import csv
from typing import List
from pathlib import Path

from ..engines.base import CrawlResult


class CSVExporter:
    """
    One row per product URL. Seeds without URLs get a single row with an
    empty url so every seed is visible in the batch.
    """

    _headers = ["domain", "seed", "url"]

    def export(self, results: List[CrawlResult], path: str) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as f:
            w = csv.writer(f)
            w.writerow(self._headers)
            for result in results:
                if not result.urls:
                    w.writerow([result.domain, result.seed, ""])
                for url in result.urls:
                    w.writerow([result.domain, result.seed, url])
