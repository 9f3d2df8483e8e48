from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
import pytest

from crystal_ball_lottery.errors import DataSourceUnavailable, PersistenceFailed
from crystal_ball_lottery.holders import Holder
from crystal_ball_lottery.ledger import WinnerRecord
from crystal_ball_lottery.payout import PayoutOutcome
from crystal_ball_lottery.rpc import RpcClient

# Well-known development keys; never funded on mainnet.
SENDER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SENDER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
WINNER = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
WINNER_CHECKSUM = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

ONE_BNB = 10**18
GWEI = 10**9


class FakeNode:
    """JSON-RPC node answering the handful of calls the payout engine makes."""

    def __init__(
        self,
        balance: int = 0,
        gas_price: int = 5 * GWEI,
        nonce: int = 7,
        tx_hash: str = "0x" + "ab" * 32,
    ) -> None:
        self.balance = balance
        self.gas_price = gas_price
        self.nonce = nonce
        self.tx_hash = tx_hash
        self.errors: Dict[str, Any] = {}
        self.status: Dict[str, int] = {}
        self.calls: List[Tuple[str, list]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append((method, body["params"]))
        if method in self.status:
            return httpx.Response(self.status[method], text="upstream failure")
        if method in self.errors:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]}
            )
        results = {
            "eth_getBalance": hex(self.balance),
            "eth_gasPrice": hex(self.gas_price),
            "eth_getTransactionCount": hex(self.nonce),
            "eth_sendRawTransaction": self.tx_hash,
        }
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": results[method]}
        )

    def methods(self) -> List[str]:
        return [m for m, _ in self.calls]


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def rpc(node: FakeNode):
    client = RpcClient("http://node.test", transport=httpx.MockTransport(node.handler))
    yield client
    client.close()


class StaticHolderSource:
    def __init__(self, holders: Sequence[Holder] = (), error: Optional[Exception] = None) -> None:
        self.holders = list(holders)
        self.error = error
        self.calls = 0

    def fetch_holders(self) -> List[Holder]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.holders)


class FakePayout:
    def __init__(self, outcome: Optional[PayoutOutcome] = None, balance: Decimal = Decimal("1.5")) -> None:
        self.outcome = outcome
        self.balance = balance
        self.paid: List[str] = []

    def pay(self, winner: str, fraction: Optional[float] = None) -> PayoutOutcome:
        self.paid.append(winner)
        assert self.outcome is not None, "payout was not expected in this test"
        return self.outcome

    def custodial_balance(self) -> Decimal:
        return self.balance


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.events: list = []
        self.fail = fail

    def notify(self, event) -> None:
        self.events.append(event)
        if self.fail:
            raise RuntimeError("chat unreachable")


class MemoryStore:
    def __init__(
        self,
        wins: Optional[Dict[str, int]] = None,
        winners: Sequence[WinnerRecord] = (),
        fail: bool = False,
    ) -> None:
        self.wins = dict(wins or {})
        self.winners = list(winners)
        self.fail = fail
        self.saves = 0

    def load(self) -> Tuple[Dict[str, int], List[WinnerRecord]]:
        return dict(self.wins), list(self.winners)

    def save(self, wins, winners) -> None:
        if self.fail:
            raise PersistenceFailed("disk full")
        self.saves += 1
        self.wins = dict(wins)
        self.winners = list(winners)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def holder(address: str, balance) -> Holder:
    return Holder(address=address, balance=Decimal(str(balance)))


@pytest.fixture
def unavailable() -> DataSourceUnavailable:
    return DataSourceUnavailable("Covalent request failed: ConnectError")
