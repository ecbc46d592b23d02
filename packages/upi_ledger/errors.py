"""Exception taxonomy for ingestion.

Only whole-source failures are exceptions. Row-level data-quality problems are
skipped and counted by the parsers, and classification misses are ordinary
``Uncategorized`` results.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for failures that abort ingestion of one source file."""


class StructuralError(IngestError):
    """Content is not valid in the format it claims to be."""


class SecretError(IngestError):
    """The source is protected and the supplied secret cannot open it.

    Callers catch this family to re-prompt instead of aborting.
    """


class SecretRequiredError(SecretError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"{filename} is password protected; a password is required")
        self.filename = filename


class InvalidSecretError(SecretError):
    def __init__(self, filename: str) -> None:
        super().__init__(f"Invalid password for {filename}. Please try again.")
        self.filename = filename


class UnsupportedFileError(IngestError):
    """No registered adapter recognised the file."""


class RulesConfigError(ValueError):
    """The classification rule file failed validation."""
