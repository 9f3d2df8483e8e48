from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import httpx
from eth_account import Account
from web3 import Web3

from .errors import InsufficientFunds, RpcError, TransactionFailed
from .project_constants import (
    CHAIN_ID,
    PAYOUT_FRACTION_MAX,
    PAYOUT_FRACTION_MIN,
    PAYOUT_SCALE,
    TRANSFER_GAS,
    WEI_PER_BNB,
)
from .rpc import RpcClient

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sent:
    transaction_id: str
    fraction: float


@dataclass(frozen=True)
class Skipped:
    reason: str
    fraction: float


@dataclass(frozen=True)
class Failed:
    error: str
    fraction: float


PayoutOutcome = Union[Sent, Skipped, Failed]


def to_percentage(fraction: float) -> float:
    return round(fraction * 100, 2)


def choose_fraction(rng: Optional[random.Random] = None) -> float:
    r = rng or random
    while True:
        f = PAYOUT_FRACTION_MIN + (PAYOUT_FRACTION_MAX - PAYOUT_FRACTION_MIN) * r.random()
        # float rounding can land exactly on the upper bound
        if f < PAYOUT_FRACTION_MAX:
            return f


def compute_transfer_value(balance_wei: int, fraction: float, gas_price_wei: int) -> int:
    """
    Wei to send: fraction of the balance, minus the fee of a plain transfer.

    The fraction is turned into parts-per-PAYOUT_SCALE first so the balance is
    only ever multiplied and divided as an integer.
    """
    if not 0 < fraction < 1:
        raise ValueError(f"Payout fraction must be in (0, 1), got {fraction}")
    if balance_wei <= 0:
        raise InsufficientFunds("Insufficient funds for prize distribution. Balance is zero!")

    fraction_scaled = int(fraction * PAYOUT_SCALE)
    prize = balance_wei * fraction_scaled // PAYOUT_SCALE
    gas_cost = TRANSFER_GAS * gas_price_wei
    value = prize - gas_cost
    log.debug("Prize: %d wei, gas cost: %d wei, value: %d wei", prize, gas_cost, value)
    if value <= 0:
        raise InsufficientFunds(
            f"Prize of {prize} wei does not cover the {gas_cost} wei transfer fee."
        )
    return value


def build_transaction(
    to: str,
    value_wei: int,
    gas_price_wei: int,
    nonce: int,
    chain_id: int = CHAIN_ID,
) -> Dict[str, Any]:
    return {
        "to": Web3.to_checksum_address(to),
        "value": value_wei,
        "gas": TRANSFER_GAS,
        "gasPrice": gas_price_wei,
        "nonce": nonce,
        "chainId": chain_id,
    }


def to_bnb(wei: int) -> Decimal:
    return Decimal(wei) / Decimal(WEI_PER_BNB)


class PayoutEngine:
    """Sends a share of the custodial wallet to a winner. Never retries."""

    def __init__(
        self,
        rpc: RpcClient,
        sender_address: str,
        private_key: str,
        chain_id: int = CHAIN_ID,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.rpc = rpc
        self.sender_address = Web3.to_checksum_address(sender_address)
        self._private_key = private_key
        self.chain_id = chain_id
        self.rng = rng

    def __repr__(self) -> str:
        return f"PayoutEngine(sender={self.sender_address}, chain_id={self.chain_id})"

    def custodial_balance(self) -> Decimal:
        return to_bnb(self.rpc.get_balance(self.sender_address))

    def pay(self, winner: str, fraction: Optional[float] = None) -> PayoutOutcome:
        if fraction is None:
            fraction = choose_fraction(self.rng)

        try:
            to = Web3.to_checksum_address(winner)
            balance = self.rpc.get_balance(self.sender_address)
            log.info("Custodial balance: %d wei", balance)
            if balance <= 0:
                raise InsufficientFunds(
                    "Insufficient funds for prize distribution. Balance is zero!"
                )

            gas_price = self.rpc.get_gas_price()
            value = compute_transfer_value(balance, fraction, gas_price)
            nonce = self.rpc.get_transaction_count(self.sender_address)
            tx = build_transaction(to, value, gas_price, nonce, self.chain_id)
            log.info(
                "Sending %s BNB to %s (%.2f%% of balance, nonce %d)",
                to_bnb(value), to, fraction * 100, nonce,
            )

            try:
                signed = Account.sign_transaction(tx, self._private_key)
            except (ValueError, TypeError) as e:
                raise TransactionFailed(f"Signing failed: {e}") from e
            tx_hash = self.rpc.send_raw_transaction(Web3.to_hex(signed.raw_transaction))
        except InsufficientFunds as e:
            log.warning("Payout to %s skipped: %s", winner, e)
            return Skipped(str(e), fraction)
        except (httpx.HTTPError, RpcError, TransactionFailed, ValueError) as e:
            log.error("Payout to %s failed: %s: %s", winner, type(e).__name__, e)
            return Failed(f"{type(e).__name__}: {e}", fraction)
        except Exception as e:
            log.exception("Payout to %s failed unexpectedly.", winner)
            return Failed(f"{type(e).__name__}: {e}", fraction)

        log.info("Prize transaction sent: %s", tx_hash)
        return Sent(tx_hash, fraction)
