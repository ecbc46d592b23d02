"""Shared shape of a source adapter.

An adapter is a plain record of three functions, registered per source app:

- ``detect(name, preview)`` scores how likely the file belongs to the app,
  looking only at the filename and a bounded content prefix;
- ``extract(file, secret)`` turns the file into opaque text payloads (binary
  content is base64 encoded) and, for protected formats, checks the secret;
- ``parse(payloads)`` delegates to the format parsers and always returns a
  full ``ParsedData``.

Adapters keep no state between calls.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ...models import DetectionMatch, ParsedData, SourceApp, UploadedFile

type Payloads = dict[str, str]
type DetectFn = Callable[[str, bytes], DetectionMatch | None]
type ExtractFn = Callable[[UploadedFile, str | None], Payloads]
type ParseFn = Callable[[Mapping[str, str]], ParsedData]


@dataclass(frozen=True, slots=True)
class Adapter:
    app: SourceApp
    display_name: str
    formats: tuple[str, ...]
    detect: DetectFn
    extract: ExtractFn
    parse: ParseFn


def encode_binary(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def decode_binary(payload: str) -> bytes:
    return base64.b64decode(payload.encode("ascii"), validate=True)


def preview_text(preview: bytes) -> str:
    return preview.decode("utf-8", errors="ignore").lstrip("\ufeff")


def decode_text(content: bytes) -> str:
    return content.decode("utf-8-sig", errors="replace")


def lower_name(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1].lower()
