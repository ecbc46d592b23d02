"""Pick the adapter for an uploaded file.

Every registered adapter scores the file from its name and a bounded content
prefix. The highest confidence wins; equal scores go to whichever adapter was
registered first. A detector that raises is logged and counts as a miss.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .ingest.adapters import ADAPTERS, Adapter
from .logging_setup import get_logger
from .models import DetectionMatch, SourceApp, UploadedFile
from .pmap import p_map_settled
from .settings import Settings


class SourceDetector:
    def __init__(
        self,
        adapters: Mapping[SourceApp, Adapter] | None = None,
        *,
        preview_bytes: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.adapters: Mapping[SourceApp, Adapter] = ADAPTERS if adapters is None else adapters
        self.preview_bytes = preview_bytes or Settings.from_env().preview_bytes
        self.logger = logger or get_logger("upi_ledger.detector")

    def candidates(self, file: UploadedFile) -> list[DetectionMatch]:
        """All positive matches, best first; ties keep registration order."""

        preview = file.preview(self.preview_bytes)
        adapters = list(self.adapters.values())

        if not adapters:
            return []
        settled = p_map_settled(
            adapters, lambda a: a.detect(file.name, preview), concurrency=len(adapters)
        )

        matches: list[DetectionMatch] = []
        for adapter, outcome in zip(adapters, settled, strict=True):
            if not outcome.ok:
                self.logger.error(
                    "%s detector failed on %s; treating as no match: %s",
                    adapter.display_name,
                    file.name,
                    outcome.error,
                )
                continue
            match = outcome.value
            if match is not None and match.confidence > 0:
                matches.append(match)
        # sorted() is stable, so equal confidences stay in registration order.
        return sorted(matches, key=lambda m: m.confidence, reverse=True)

    def detect(self, file: UploadedFile) -> DetectionMatch | None:
        ranked = self.candidates(file)
        if not ranked:
            self.logger.info("No adapter recognised %s", file.name)
            return None
        best = ranked[0]
        self.logger.debug(
            "Detected %s as %s (confidence %.2f)", file.name, best.adapter_id, best.confidence
        )
        return best