from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, Union

import httpx

from .ledger import WinnerRecord

log = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

BALL_IMAGES = {
    1: "https://i.ibb.co/zJ22FG8/DALL-E-2023-12-05-16-50-19-A-single-pink-crystal-ball-inspired-by-Lucky-Lady-s-charm-casino-game-wit.png",
    2: "https://i.ibb.co/0tqJQgg/DALL-E-2023-12-05-16-50-16-Two-pink-crystal-balls-inspired-by-Lucky-Lady-s-charm-casino-game-with-a.png",
    3: "https://i.ibb.co/X51N3PN/DALL-E-2023-12-05-16-50-13-Three-pink-crystal-balls-inspired-by-Lucky-Lady-s-charm-casino-game-arran.png",
}


@dataclass(frozen=True)
class BallAwardedEvent:
    address: str
    count: int


@dataclass(frozen=True)
class PayoutSentEvent:
    address: str
    percentage: float
    transaction_id: str


@dataclass(frozen=True)
class PayoutFailedEvent:
    address: str
    percentage: float
    reason: str = ""
    insufficient_funds: bool = False


Event = Union[BallAwardedEvent, PayoutSentEvent, PayoutFailedEvent]


class Notifier(Protocol):
    def notify(self, event: Event) -> None: ...


def shorten_address(address: str) -> str:
    if len(address) <= 8:
        return address
    return f"{address[:5]}...{address[-3:]}"


def rank_label(index: int) -> str:
    return {0: "🥇", 1: "🥈", 2: "🥉"}.get(index, f"  {index + 1}.")


def render_event(event: Event) -> str:
    who = shorten_address(event.address)
    if isinstance(event, BallAwardedEvent):
        plural = "ball" if event.count == 1 else "balls"
        return f"Congratulations {who}!\nYou are now holding {event.count} crystal {plural}!"
    if isinstance(event, PayoutSentEvent):
        return (
            f"🎉 Congratulations to {who}! You've won {event.percentage:.2f}% of the prize! 🎉\n"
            f"Transaction ID: {event.transaction_id}"
        )
    if event.insufficient_funds:
        return (
            f"{who} collected 3 crystal balls, but the prize wallet cannot cover the payout. "
            "Please contact support."
        )
    return f"There was an issue with the transaction for {who}. Please contact support."


def event_image(event: Event) -> Optional[str]:
    if isinstance(event, BallAwardedEvent):
        return BALL_IMAGES.get(event.count)
    return BALL_IMAGES[3]


def render_ball_board(rows: Sequence[Tuple[str, int]], title: str = "Top Crystal Ball Counts") -> str:
    lines: List[str] = [f"🔮 {title} 🔮", ""]
    for i, (address, count) in enumerate(rows):
        lines.append(f"{rank_label(i)} {shorten_address(address)} - {'🔮' * count}")
    return "\n".join(lines)


def render_winner_board(rows: Sequence[WinnerRecord], title: str = "Top Winners") -> str:
    if not rows:
        return "No winners recorded yet."
    lines: List[str] = [f"🏆 {title} 🏆", ""]
    for i, record in enumerate(rows):
        lines.append(f"{rank_label(i)} {shorten_address(record.address)} - {record.percentage:.2f}%")
    return "\n".join(lines)


class LogNotifier:
    def notify(self, event: Event) -> None:
        log.info("Announcement: %s", render_event(event).replace("\n", " "))


class TelegramNotifier:
    """Posts announcements to a chat through the Telegram Bot HTTP API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        base_url: str = TELEGRAM_API_URL,
    ) -> None:
        self._bot_token = bot_token
        self.chat_id = chat_id
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, payload: dict) -> None:
        try:
            resp = self.client.post(f"{self.base_url}/bot{self._bot_token}/{method}", json=payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            # the request URL carries the bot token
            raise RuntimeError(f"Telegram {method} request failed: {type(e).__name__}") from e
        if not data.get("ok"):
            raise RuntimeError(f"Telegram {method} failed: {data.get('description')}")

    def notify(self, event: Event) -> None:
        caption = render_event(event)
        image = event_image(event)
        if image:
            self._call("sendPhoto", {"chat_id": self.chat_id, "photo": image, "caption": caption})
        else:
            self._call("sendMessage", {"chat_id": self.chat_id, "text": caption})
