from __future__ import annotations

import argparse
import logging
import signal
import threading

from .config import Settings
from .distributor import BallRound, Distributor, LotteryState, PayoutRound, RoundAborted
from .errors import ConfigError
from .holders import CovalentHolderSource
from .ledger import BallLedger, WinnersHistory
from .notify import LogNotifier, TelegramNotifier, render_ball_board, render_winner_board
from .payout import PayoutEngine, Sent
from .project_constants import LEADERBOARD_SIZE
from .rpc import RpcClient
from .scheduler import RoundScheduler
from .storage import JsonStateStore


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def load_settings(args: argparse.Namespace, require_signer: bool) -> Settings:
    try:
        return Settings.from_env(rpc_url_override=args.rpc_url, require_signer=require_signer)
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")


def load_lottery_state(settings: Settings) -> LotteryState:
    wins, winners = JsonStateStore(settings.state_path).load()
    return LotteryState(
        ledger=BallLedger.from_mapping(wins, settings.blacklist),
        history=WinnersHistory(winners),
    )


def cmd_run(args: argparse.Namespace) -> int:
    settings = load_settings(args, require_signer=True)
    log = logging.getLogger("run")

    rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
    source = CovalentHolderSource(
        api_key=settings.covalent_api_key,
        chain_id=settings.chain_id,
        contract_address=settings.token_contract,
        blacklist=settings.blacklist,
        timeout_s=args.timeout,
    )
    if settings.bot_token and settings.announcement_chat_id:
        notifier = TelegramNotifier(settings.bot_token, settings.announcement_chat_id)
    else:
        log.info("BOT_TOKEN / ANNOUNCEMENT_CHAT_ID not set, announcements go to the log.")
        notifier = LogNotifier()

    try:
        distributor = Distributor.load(
            holder_source=source,
            payout=PayoutEngine(rpc, settings.sender_address, settings.private_key, settings.chain_id),
            notifier=notifier,
            store=JsonStateStore(settings.state_path),
            blacklist=settings.blacklist,
            interval_s=settings.round_interval_s,
        )

        if args.once:
            outcome = distributor.run_round()
            if isinstance(outcome, RoundAborted):
                print(f"Round aborted: {outcome.reason}")
            elif isinstance(outcome, BallRound):
                print(f"{outcome.address} now holds {outcome.count} crystal ball(s)")
            elif isinstance(outcome, PayoutRound):
                status = (
                    f"sent {outcome.outcome.transaction_id}"
                    if isinstance(outcome.outcome, Sent)
                    else "NOT sent"
                )
                print(f"Payout of {outcome.percentage:.2f}% to {outcome.address}: {status}")
            return 0

        stop = threading.Event()
        signal.signal(signal.SIGINT, lambda *_: stop.set())
        signal.signal(signal.SIGTERM, lambda *_: stop.set())
        RoundScheduler(distributor, settings.round_interval_s).run_forever(stop)
    finally:
        rpc.close()
        source.close()
        if isinstance(notifier, TelegramNotifier):
            notifier.close()
    return 0


def cmd_balls(args: argparse.Namespace) -> int:
    settings = load_settings(args, require_signer=False)
    state = load_lottery_state(settings)
    print(render_ball_board(state.ledger.top(args.top), title=f"Top {args.top} Crystal Ball Counts"))
    return 0


def cmd_winners(args: argparse.Namespace) -> int:
    settings = load_settings(args, require_signer=False)
    state = load_lottery_state(settings)
    print(render_winner_board(state.history.top(args.top), title=f"Top {args.top} Winners"))
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    settings = load_settings(args, require_signer=False)
    ledger = load_lottery_state(settings).ledger
    count = ledger.count(args.address) or ledger.count(args.address.lower())
    print(f"{args.address} has {count} crystal ball(s) 🔮")
    return 0


def cmd_prize(args: argparse.Namespace) -> int:
    settings = load_settings(args, require_signer=False)
    with RpcClient(settings.rpc_url, timeout_s=args.timeout) as rpc:
        engine = PayoutEngine(rpc, settings.sender_address, settings.private_key, settings.chain_id)
        print(f"Current wallet holding: {engine.custodial_balance()} BNB")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="crystal-ball-lottery",
        description="Crystal ball distribution for BSC token holders.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="Network timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Distribute a crystal ball every round interval.")
    r.add_argument("--once", action="store_true", help="Run a single round and exit.")
    r.set_defaults(func=cmd_run)

    b = sub.add_parser("balls", help="Show the top crystal ball holders.")
    b.add_argument("--top", type=int, default=LEADERBOARD_SIZE)
    b.set_defaults(func=cmd_balls)

    w = sub.add_parser("winners", help="Show the biggest payouts so far.")
    w.add_argument("--top", type=int, default=LEADERBOARD_SIZE)
    w.set_defaults(func=cmd_winners)

    c = sub.add_parser("check", help="Show the crystal balls held by one address.")
    c.add_argument("address")
    c.set_defaults(func=cmd_check)

    pz = sub.add_parser("prize", help="Show the custodial wallet balance.")
    pz.set_defaults(func=cmd_prize)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
