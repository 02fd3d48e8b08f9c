"""Domain events emitted when pairing requests are written."""

from __future__ import annotations

from dataclasses import dataclass

from .enums import PairRequestStatus


@dataclass(frozen=True)
class PairRequestCreated:
    pair_request_id: int
    trip_id: int


@dataclass(frozen=True)
class PairRequestUpdated:
    pair_request_id: int
    trip_id: int
    before_status: PairRequestStatus
    after_status: PairRequestStatus

    @property
    def status_changed(self) -> bool:
        return self.before_status != self.after_status
