from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple, Union

from .holders import is_blacklisted
from .project_constants import BALL_THRESHOLD

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BallAwarded:
    address: str
    count: int


@dataclass(frozen=True)
class ThresholdCrossed:
    address: str


WinResult = Union[BallAwarded, ThresholdCrossed]


class BallLedger:
    """
    Crystal balls held per address.

    Counts stay in [0, threshold). The win that would reach the threshold
    resets the count to 0 and reports ThresholdCrossed instead.
    """

    def __init__(self, threshold: int = BALL_THRESHOLD) -> None:
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        self.threshold = threshold
        self._wins: Dict[str, int] = {}

    @classmethod
    def from_mapping(
        cls,
        wins: Mapping[str, int],
        blacklist: FrozenSet[str] = frozenset(),
        threshold: int = BALL_THRESHOLD,
    ) -> "BallLedger":
        ledger = cls(threshold)
        dropped = 0
        for address, count in wins.items():
            if is_blacklisted(address, blacklist):
                dropped += 1
                continue
            if isinstance(count, bool) or not isinstance(count, int):
                raise ValueError(f"Ball count for {address} is not an integer: {count!r}")
            if not 0 <= count < threshold:
                raise ValueError(f"Ball count for {address} out of range: {count}")
            ledger._wins[address] = count
        if dropped:
            log.info("Blacklisted addresses filtered: %d", dropped)
        return ledger

    def record_win(self, address: str) -> WinResult:
        count = self._wins.get(address, 0) + 1
        if count >= self.threshold:
            self._wins[address] = 0
            return ThresholdCrossed(address)
        self._wins[address] = count
        return BallAwarded(address, count)

    def count(self, address: str) -> int:
        return self._wins.get(address, 0)

    def items(self) -> List[Tuple[str, int]]:
        return list(self._wins.items())

    def as_dict(self) -> Dict[str, int]:
        return dict(self._wins)

    def top(self, n: int) -> List[Tuple[str, int]]:
        ranked = sorted(self._wins.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[: max(n, 0)]

    def __contains__(self, address: object) -> bool:
        return address in self._wins

    def __len__(self) -> int:
        return len(self._wins)


@dataclass(frozen=True)
class WinnerRecord:
    address: str
    percentage: float


class WinnersHistory:
    """Completed payouts in the order they happened. Append only."""

    def __init__(self, records: Iterable[WinnerRecord] = ()) -> None:
        self._records: List[WinnerRecord] = []
        for r in records:
            self.append(r)

    def append(self, record: WinnerRecord) -> None:
        if not 0 < record.percentage <= 100:
            raise ValueError(f"Percentage out of range: {record.percentage}")
        self._records.append(record)

    def records(self) -> Tuple[WinnerRecord, ...]:
        return tuple(self._records)

    def top(self, n: int) -> List[WinnerRecord]:
        return sorted(self._records, key=lambda r: r.percentage, reverse=True)[: max(n, 0)]

    def __len__(self) -> int:
        return len(self._records)
