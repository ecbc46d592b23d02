"""A small ``p-map`` style helper over ``ThreadPoolExecutor``.

Used to fan detection out across adapters and ingestion out across files.
``p_map_settled`` never raises for mapper errors; each input yields a
``Settled`` carrying either the value or the exception, in input order, so
one bad file cannot hide the results of the others.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Settled[T]:
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def p_map_settled[InT, OutT](
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT],
    *,
    concurrency: int,
) -> list[Settled[OutT]]:
    """Map ``iterable`` through ``mapper`` with at most ``concurrency`` calls in flight."""

    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    it = enumerate(iterable)
    results: dict[int, Settled[OutT]] = {}
    future_to_idx: dict[Future, int] = {}

    def _submit(pool: ThreadPoolExecutor) -> Future | None:
        try:
            idx, item = next(it)
        except StopIteration:
            return None
        fut = pool.submit(mapper, item)
        future_to_idx[fut] = idx
        return fut

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        active: set[Future] = set()
        for _ in range(concurrency):
            fut = _submit(pool)
            if fut is None:
                break
            active.add(fut)

        while active:
            done, active = wait(active, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = future_to_idx.pop(fut)
                try:
                    results[idx] = Settled(value=fut.result())
                except Exception as e:  # noqa: BLE001
                    results[idx] = Settled(error=e)
            # Refill the window.
            for _ in range(len(done)):
                fut = _submit(pool)
                if fut is None:
                    break
                active.add(fut)

    return [results[i] for i in range(len(results))]


__all__ = ["Settled", "p_map_settled"]
