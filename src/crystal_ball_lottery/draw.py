from __future__ import annotations

import logging
import random
from decimal import Decimal
from typing import Dict, Iterable, Optional

from .errors import NoValidTickets
from .holders import Holder

log = logging.getLogger(__name__)

# address -> weight, iterated in insertion order
TicketTable = Dict[str, Decimal]


def allocate_tickets(holders: Iterable[Holder]) -> TicketTable:
    """One ticket per token held. Holders without a positive balance get none."""
    tickets: TicketTable = {}
    for h in holders:
        if h.balance <= 0:
            log.debug("Balance for %s is zero or negative, skipping.", h.address)
            continue
        tickets[h.address] = tickets.get(h.address, Decimal(0)) + h.balance
    return tickets


def total_weight(tickets: TicketTable) -> Decimal:
    return sum(tickets.values(), Decimal(0))


def draw_position(total: Decimal, rng: Optional[random.Random] = None) -> Decimal:
    """Uniform position in [0, total)."""
    r = (rng or random).random()
    return Decimal(r) * total


def find_winner(tickets: TicketTable, position: Decimal) -> str:
    """
    Walk the table subtracting each weight from position; the address at which
    the remainder drops to zero or below owns the position.
    """
    if not tickets:
        raise NoValidTickets("Empty ticket table.")
    remainder = position
    address = ""
    for address, weight in tickets.items():
        remainder -= weight
        if remainder <= 0:
            return address
    # Only reachable when rounding leaves a sliver past the last boundary.
    return address


def select_winner(tickets: TicketTable, rng: Optional[random.Random] = None) -> str:
    total = total_weight(tickets)
    if total <= 0:
        raise NoValidTickets("No valid tickets for selecting a winner.")
    return find_winner(tickets, draw_position(total, rng))
