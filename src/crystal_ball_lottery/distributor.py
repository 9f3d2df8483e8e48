from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple, Union

from .draw import allocate_tickets, select_winner
from .errors import DataSourceUnavailable, NoValidTickets, PersistenceFailed
from .holders import Holder
from .ledger import BallLedger, ThresholdCrossed, WinnerRecord, WinnersHistory
from .notify import (
    BallAwardedEvent,
    Event,
    Notifier,
    PayoutFailedEvent,
    PayoutSentEvent,
)
from .payout import PayoutEngine, PayoutOutcome, Sent, Skipped, to_percentage
from .project_constants import BALL_THRESHOLD, ROUND_INTERVAL_SECONDS

log = logging.getLogger(__name__)


class HolderSource(Protocol):
    def fetch_holders(self) -> Sequence[Holder]: ...


class StateStore(Protocol):
    def load(self) -> Tuple[Dict[str, int], List[WinnerRecord]]: ...

    def save(self, wins: Dict[str, int], winners: Sequence[WinnerRecord]) -> None: ...


@dataclass(frozen=True)
class RoundAborted:
    reason: str


@dataclass(frozen=True)
class BallRound:
    address: str
    count: int


@dataclass(frozen=True)
class PayoutRound:
    address: str
    percentage: float
    outcome: PayoutOutcome


RoundOutcome = Union[RoundAborted, BallRound, PayoutRound]


@dataclass
class LotteryState:
    ledger: BallLedger
    history: WinnersHistory


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Distributor:
    """
    Runs crystal ball rounds: fetch holders, draw a winner, award a ball,
    pay out on the third ball, announce, persist.

    The distributor is the only writer of the ledger and the winners history.
    Rounds must be serialized by the caller (see RoundScheduler).
    """

    def __init__(
        self,
        holder_source: HolderSource,
        payout: PayoutEngine,
        notifier: Notifier,
        store: StateStore,
        state: Optional[LotteryState] = None,
        interval_s: float = ROUND_INTERVAL_SECONDS,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.holder_source = holder_source
        self.payout = payout
        self.notifier = notifier
        self.store = store
        self.state = state or LotteryState(BallLedger(), WinnersHistory())
        self.interval = timedelta(seconds=interval_s)
        self.rng = rng
        self.clock = clock
        self.next_round_at = clock() + self.interval

    @classmethod
    def load(
        cls,
        holder_source: HolderSource,
        payout: PayoutEngine,
        notifier: Notifier,
        store: StateStore,
        blacklist: FrozenSet[str] = frozenset(),
        threshold: int = BALL_THRESHOLD,
        **kwargs,
    ) -> "Distributor":
        wins, winners = store.load()
        state = LotteryState(
            ledger=BallLedger.from_mapping(wins, blacklist, threshold),
            history=WinnersHistory(winners),
        )
        return cls(holder_source, payout, notifier, store, state=state, **kwargs)

    # ----------------------------
    # Round
    # ----------------------------
    def schedule_next(self, started_at: Optional[datetime] = None) -> None:
        self.next_round_at = (started_at or self.clock()) + self.interval

    def run_round(self) -> RoundOutcome:
        started_at = self.clock()
        try:
            return self._run_round()
        finally:
            # the cadence counts from the tick, not from the end of the round
            self.schedule_next(started_at)

    def _run_round(self) -> RoundOutcome:
        log.info("Distributing crystal ball...")

        try:
            holders = self.holder_source.fetch_holders()
        except DataSourceUnavailable as e:
            log.warning("Holder snapshot unavailable, skipping round: %s", e)
            return RoundAborted(str(e))
        if not holders:
            log.info("No token holders found, skipping crystal ball distribution.")
            return RoundAborted("no holders")

        tickets = allocate_tickets(holders)
        if not tickets:
            log.info("No valid tickets calculated, aborting distribution.")
            return RoundAborted("no tickets")

        try:
            winner = select_winner(tickets, self.rng)
        except NoValidTickets as e:
            log.info("No winner selected, aborting distribution: %s", e)
            return RoundAborted(str(e))
        log.info("Selected winner: %s (%d entrants)", winner, len(tickets))

        result = self.state.ledger.record_win(winner)
        outcome: RoundOutcome
        event: Event
        if isinstance(result, ThresholdCrossed):
            log.info("Distributing prize to %s who has collected %d crystal balls.",
                     winner, self.state.ledger.threshold)
            paid = self.payout.pay(winner)
            percentage = to_percentage(paid.fraction)
            if isinstance(paid, Sent):
                self.state.history.append(WinnerRecord(winner, percentage))
                event = PayoutSentEvent(winner, percentage, paid.transaction_id)
            else:
                reason = paid.reason if isinstance(paid, Skipped) else paid.error
                event = PayoutFailedEvent(
                    winner, percentage, reason, insufficient_funds=isinstance(paid, Skipped)
                )
            outcome = PayoutRound(winner, percentage, paid)
        else:
            log.info("%s now holds %d crystal ball(s).", winner, result.count)
            event = BallAwardedEvent(winner, result.count)
            outcome = BallRound(winner, result.count)

        self._notify(event)
        self._persist()
        return outcome

    def _notify(self, event: Event) -> None:
        try:
            self.notifier.notify(event)
        except Exception:
            log.exception("Failed to deliver announcement for %s.", event.address)

    def _persist(self) -> None:
        try:
            self.store.save(self.state.ledger.as_dict(), self.state.history.records())
        except PersistenceFailed as e:
            log.warning("State not persisted, in-memory state stays authoritative: %s", e)

    # ----------------------------
    # Queries (read only)
    # ----------------------------
    def current_ball_count(self, address: str) -> int:
        ledger = self.state.ledger
        if address in ledger:
            return ledger.count(address)
        return ledger.count(address.lower())

    def time_until_next_round(self) -> timedelta:
        return max(self.next_round_at - self.clock(), timedelta(0))

    def top_ball_holders(self, n: int) -> List[Tuple[str, int]]:
        return self.state.ledger.top(n)

    def top_winners(self, n: int) -> List[WinnerRecord]:
        return self.state.history.top(n)

    def custodial_balance(self) -> Decimal:
        return self.payout.custodial_balance()
