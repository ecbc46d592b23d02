"""Registry of source adapters, in registration order.

Registration order breaks detection ties, so the more specific exporters come
first.
"""

from __future__ import annotations

from ...errors import UnsupportedFileError
from ...models import SourceApp
from . import bhim, googlepay, paytm, phonepe
from .base import Adapter, Payloads

ADAPTERS: dict[SourceApp, Adapter] = {
    adapter.app: adapter
    for adapter in (googlepay.ADAPTER, bhim.ADAPTER, paytm.ADAPTER, phonepe.ADAPTER)
}


def get_adapter(app: SourceApp | str) -> Adapter:
    try:
        return ADAPTERS[SourceApp(app)]
    except (KeyError, ValueError) as e:
        raise UnsupportedFileError(f"No adapter registered for {app!r}") from e


__all__ = ["ADAPTERS", "Adapter", "Payloads", "get_adapter"]
