"""Per-run bookkeeping of which beat owns which customer."""

from __future__ import annotations

from typing import Iterable, Sequence

from ...models.domain import Beat


class AssignmentLedger:
    """Tracks customer to beat ownership for a single build run.

    A ledger is created per territory build and handed to every pass that
    needs it; it is never shared between runs.
    """

    def __init__(self, customer_ids: Iterable[str]) -> None:
        self._expected = list(customer_ids)
        self._known = set(self._expected)
        self._owner: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._owner)

    def __contains__(self, customer_id: object) -> bool:
        return customer_id in self._owner

    def assign(self, customer_id: str, beat_id: int) -> None:
        if customer_id not in self._known:
            raise ValueError(f"Customer '{customer_id}' does not belong to this territory.")
        if customer_id in self._owner:
            raise ValueError(
                f"Customer '{customer_id}' is already assigned to beat {self._owner[customer_id]}."
            )
        self._owner[customer_id] = beat_id

    def unassigned(self) -> list[str]:
        return [customer_id for customer_id in self._expected if customer_id not in self._owner]

    def sync(self, beats: Sequence[Beat]) -> list[tuple[int, str]]:
        """Rebuild ownership from the beats; return the (beat_id, customer_id) entries to drop.

        An entry is rejected when the customer is foreign to the territory or
        already owned by an earlier stop.
        """

        self._owner.clear()
        rejected: list[tuple[int, str]] = []
        for beat in beats:
            for stop in beat.stops:
                if stop.customer_id not in self._known or stop.customer_id in self._owner:
                    rejected.append((beat.beat_id, stop.customer_id))
                    continue
                self._owner[stop.customer_id] = beat.beat_id
        return rejected
