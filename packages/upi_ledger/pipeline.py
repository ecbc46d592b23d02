"""Coordinate detect -> extract (with secret retries) -> parse -> merge.

``process_file`` handles one file and never touches shared state. ``Pipeline``
owns the batch accumulator and is the only writer to it. Failures are reported
per file as ``IngestOutcome`` values; other files in the batch are unaffected.

Secret-protected sources are retried without re-running detection: the
adapter's ``extract`` validates the secret cheaply, and a ``SecretError`` from
it triggers the caller-supplied prompt until the attempt budget runs out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from .detector import SourceDetector
from .errors import IngestError, SecretError, StructuralError
from .ingest.adapters import ADAPTERS, Adapter
from .logging_setup import get_logger
from .models import DetectionMatch, ParsedData, SourceApp, UploadedFile
from .pmap import p_map_settled
from .settings import Settings

type SecretPrompt = Callable[[UploadedFile, SecretError, int], str | None]


class OutcomeStatus(StrEnum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


class FailureKind(StrEnum):
    STRUCTURAL = "structural"
    SECRET = "secret"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class IngestOutcome:
    file_name: str
    status: OutcomeStatus
    data: ParsedData = field(default_factory=ParsedData)
    adapter: SourceApp | None = None
    failure_kind: FailureKind | None = None
    message: str | None = None
    attempts: int = 0

    @property
    def needs_secret(self) -> bool:
        return self.failure_kind is FailureKind.SECRET


@dataclass(slots=True)
class BatchResult:
    data: ParsedData
    outcomes: list[IngestOutcome]

    @property
    def failed(self) -> list[IngestOutcome]:
        return [o for o in self.outcomes if o.status is OutcomeStatus.FAILED]

    @property
    def succeeded(self) -> list[IngestOutcome]:
        return [o for o in self.outcomes if o.status is not OutcomeStatus.FAILED]


def _failed(
    file: UploadedFile,
    kind: FailureKind,
    message: str,
    *,
    adapter: SourceApp | None = None,
    attempts: int = 0,
) -> IngestOutcome:
    return IngestOutcome(
        file_name=file.name,
        status=OutcomeStatus.FAILED,
        adapter=adapter,
        failure_kind=kind,
        message=message,
        attempts=attempts,
    )


def _run_adapter(
    adapter: Adapter,
    file: UploadedFile,
    secret: str | None,
    *,
    secret_prompt: SecretPrompt | None,
    max_attempts: int,
    log: logging.Logger,
) -> IngestOutcome:
    attempts = 0
    current = secret
    while True:
        attempts += 1
        try:
            payloads = adapter.extract(file, current)
            break
        except SecretError as e:
            log.info("%s: %s (attempt %d/%d)", file.name, e, attempts, max_attempts)
            if secret_prompt is None or attempts >= max_attempts:
                return _failed(
                    file, FailureKind.SECRET, str(e), adapter=adapter.app, attempts=attempts
                )
            current = secret_prompt(file, e, attempts)
            if current is None:
                return _failed(
                    file, FailureKind.SECRET, str(e), adapter=adapter.app, attempts=attempts
                )
        except StructuralError as e:
            log.warning("%s: %s", file.name, e)
            return _failed(
                file, FailureKind.STRUCTURAL, str(e), adapter=adapter.app, attempts=attempts
            )

    try:
        data = adapter.parse(payloads)
    except SecretError as e:
        return _failed(file, FailureKind.SECRET, str(e), adapter=adapter.app, attempts=attempts)
    except IngestError as e:
        log.warning("%s: %s", file.name, e)
        return _failed(
            file, FailureKind.STRUCTURAL, str(e), adapter=adapter.app, attempts=attempts
        )

    if data.is_empty():
        message = "; ".join(data.warnings) or "No records found"
        log.warning("%s: %s", file.name, message)
        return IngestOutcome(
            file_name=file.name,
            status=OutcomeStatus.EMPTY,
            data=data,
            adapter=adapter.app,
            message=message,
            attempts=attempts,
        )
    log.info(
        "%s: %d records via %s (%d rows skipped)",
        file.name,
        data.record_count(),
        adapter.display_name,
        data.skipped_rows,
    )
    return IngestOutcome(
        file_name=file.name,
        status=OutcomeStatus.OK,
        data=data,
        adapter=adapter.app,
        attempts=attempts,
    )


def process_file(
    file: UploadedFile,
    secret: str | None = None,
    *,
    detector: SourceDetector | None = None,
    adapters: Mapping[SourceApp, Adapter] | None = None,
    secret_prompt: SecretPrompt | None = None,
    max_secret_attempts: int | None = None,
    logger: logging.Logger | None = None,
) -> IngestOutcome:
    """Ingest one file and report what happened.

    Detection runs exactly once. When ``secret_prompt`` is given, a
    ``SecretError`` from ``extract`` calls it with ``(file, error, attempt)``
    and retries with the returned secret; ``None`` from the prompt gives up.
    """

    log = logger or get_logger("upi_ledger.pipeline")
    table = ADAPTERS if adapters is None else adapters
    det = detector or SourceDetector(table, logger=log)
    limit = max_secret_attempts or Settings.from_env().max_secret_attempts

    match: DetectionMatch | None = det.detect(file)
    if match is None or match.adapter_id not in table:
        return _failed(file, FailureKind.UNSUPPORTED, f"Unsupported file: {file.name}")
    return _run_adapter(
        table[match.adapter_id],
        file,
        secret,
        secret_prompt=secret_prompt,
        max_attempts=limit,
        log=log,
    )


class Pipeline:
    """Batch ingestion with a single accumulator."""

    def __init__(
        self,
        *,
        adapters: Mapping[SourceApp, Adapter] | None = None,
        settings: Settings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.adapters = ADAPTERS if adapters is None else adapters
        self.logger = logger or get_logger("upi_ledger.pipeline")
        self.detector = SourceDetector(
            self.adapters, preview_bytes=self.settings.preview_bytes, logger=self.logger
        )
        self.data = ParsedData()

    def ingest_file(
        self,
        file: UploadedFile,
        secret: str | None = None,
        *,
        secret_prompt: SecretPrompt | None = None,
    ) -> IngestOutcome:
        outcome = process_file(
            file,
            secret,
            detector=self.detector,
            adapters=self.adapters,
            secret_prompt=secret_prompt,
            max_secret_attempts=self.settings.max_secret_attempts,
            logger=self.logger,
        )
        self._merge(outcome)
        return outcome

    def ingest(
        self,
        files: Iterable[UploadedFile],
        secrets: Mapping[str, str] | None = None,
        *,
        secret_prompt: SecretPrompt | None = None,
    ) -> BatchResult:
        """Ingest ``files`` and return the merged data plus one outcome per file.

        ``secrets`` maps file names to secrets. Without a prompt, files are
        processed concurrently; with one they run one at a time so prompts
        never interleave. An unexpected error while processing one file is
        reported as that file's failure and does not affect the others.
        """

        batch = list(files)
        known = dict(secrets or {})
        concurrency = 1 if secret_prompt is not None else min(8, max(1, len(batch)))
        settled = p_map_settled(
            batch,
            lambda f: process_file(
                f,
                known.get(f.name),
                detector=self.detector,
                adapters=self.adapters,
                secret_prompt=secret_prompt,
                max_secret_attempts=self.settings.max_secret_attempts,
                logger=self.logger,
            ),
            concurrency=concurrency,
        )

        outcomes: list[IngestOutcome] = []
        for file, result in zip(batch, settled, strict=True):
            if result.ok:
                outcome = result.value
            else:
                self.logger.error(
                    "%s: unexpected error while ingesting", file.name, exc_info=result.error
                )
                outcome = _failed(file, FailureKind.STRUCTURAL, f"Unexpected error: {result.error}")
            # Merge in input order once every file has finished.
            self._merge(outcome)
            outcomes.append(outcome)
        return BatchResult(data=self.data, outcomes=outcomes)

    def _merge(self, outcome: IngestOutcome) -> None:
        if outcome.status is not OutcomeStatus.FAILED:
            self.data.extend(outcome.data)


def ingest_files(
    files: Iterable[UploadedFile],
    secrets: Mapping[str, str] | None = None,
    *,
    secret_prompt: SecretPrompt | None = None,
) -> BatchResult:
    return Pipeline().ingest(files, secrets, secret_prompt=secret_prompt)
