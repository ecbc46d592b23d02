"""Locate known payment files inside an uploaded archive.

Takeout-style archives nest the files we care about under a product folder,
optionally behind a ``Takeout/`` prefix. Members are matched by path suffix so
either layout works.
"""

from __future__ import annotations

import io
import zipfile
from collections.abc import Callable

from ..errors import StructuralError
from ..logging_setup import get_logger

logger = get_logger("upi_ledger.ingest.bundle")


def _suffix(path: str) -> Callable[[str], bool]:
    return lambda name: name == path or name.endswith("/" + path)


# Payload key -> member predicate. Keys are the payload names adapters parse.
GOOGLE_PAY_MEMBERS: dict[str, Callable[[str], bool]] = {
    "transactions": lambda name: (
        "Google transactions/transactions_" in name and name.lower().endswith(".csv")
    ),
    "group_expenses": _suffix("Google Pay/Group expenses/Group expenses.json"),
    "cashback_rewards": _suffix("Google Pay/Rewards earned/Cashback rewards.csv"),
    "voucher_rewards": _suffix("Google Pay/Rewards earned/Voucher rewards.json"),
    "my_activity": _suffix("Google Pay/My Activity/My Activity.html"),
}


def open_archive(data: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise StructuralError(f"Invalid or corrupted zip archive: {e}") from e


def locate_payloads(
    data: bytes, members: dict[str, Callable[[str], bool]] = GOOGLE_PAY_MEMBERS
) -> dict[str, str]:
    """Return ``{payload_key: text}`` for every known member in the archive.

    Raises ``StructuralError`` when the archive is unreadable or holds none of
    the known members.
    """

    found: dict[str, str] = {}
    with open_archive(data) as zf:
        names = [n for n in zf.namelist() if not n.endswith("/")]
        for key, matches in members.items():
            name = next((n for n in names if matches(n)), None)
            if name is None:
                continue
            try:
                raw = zf.read(name)
            except (zipfile.BadZipFile, OSError) as e:
                raise StructuralError(f"Cannot read {name} from archive: {e}") from e
            found[key] = raw.decode("utf-8-sig", errors="replace")
            logger.debug("Found %s at %s", key, name)

    if not found:
        raise StructuralError("No recognised payment files found in the archive")
    return found
