from __future__ import annotations


class LotteryError(RuntimeError):
    """Base class for every failure the distribution engine knows how to handle."""


class ConfigError(LotteryError):
    """Required configuration is missing. Fatal at startup."""


class DataSourceUnavailable(LotteryError):
    """The holder snapshot could not be fetched or parsed."""


class NoValidTickets(LotteryError):
    """No holder carries a positive weight."""


class InsufficientFunds(LotteryError):
    """Custodial balance is zero, or nothing is left after fees."""


class TransactionFailed(LotteryError):
    """Signing or submitting the payout transaction failed."""


class PersistenceFailed(LotteryError):
    """The state snapshot could not be written."""


class RpcError(LotteryError):
    """The JSON-RPC node answered with an error object."""
