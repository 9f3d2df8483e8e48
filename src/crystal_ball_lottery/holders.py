from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

import httpx

from .errors import DataSourceUnavailable
from .project_constants import COVALENT_API_URL, COVALENT_MAX_PAGES, COVALENT_PAGE_SIZE

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holder:
    address: str
    balance: Decimal


def parse_blacklist(raw: str | None) -> FrozenSet[str]:
    """Comma separated addresses -> lowercase set. Blank entries are ignored."""
    if not raw:
        return frozenset()
    return frozenset(a.strip().lower() for a in raw.split(",") if a.strip())


def is_blacklisted(address: str, blacklist: FrozenSet[str]) -> bool:
    return address.lower() in blacklist


def to_token_amount(raw_balance: Any, decimals: Any) -> Decimal:
    """Raw integer balance string -> token amount, without going through float."""
    try:
        # built from a string so no context rounding applies
        return Decimal(f"{str(raw_balance).strip()}e-{int(decimals)}")
    except (InvalidOperation, TypeError, ValueError) as e:
        raise DataSourceUnavailable(
            f"Bad holder balance {raw_balance!r} (decimals={decimals!r})"
        ) from e


def parse_holder_items(
    items: Iterable[Dict[str, Any]],
    blacklist: FrozenSet[str],
) -> List[Holder]:
    holders: List[Holder] = []
    for item in items:
        address = item.get("address")
        if not isinstance(address, str) or not address:
            raise DataSourceUnavailable(f"Holder item without address: {item!r}")
        if is_blacklisted(address, blacklist):
            continue
        holders.append(
            Holder(
                address=address,
                balance=to_token_amount(item.get("balance"), item.get("contract_decimals", 0)),
            )
        )
    return holders


class CovalentHolderSource:
    """Token holder snapshot from the Covalent token_holders endpoint."""

    def __init__(
        self,
        api_key: str,
        chain_id: int,
        contract_address: str,
        blacklist: FrozenSet[str] = frozenset(),
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
        base_url: str = COVALENT_API_URL,
        page_size: int = COVALENT_PAGE_SIZE,
        max_pages: int = COVALENT_MAX_PAGES,
    ) -> None:
        self.api_key = api_key
        self.chain_id = chain_id
        self.contract_address = contract_address
        self.blacklist = blacklist
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.max_pages = max_pages
        self.client = httpx.Client(timeout=timeout_s, transport=transport)

    def close(self) -> None:
        self.client.close()

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.chain_id}/tokens/{self.contract_address}/token_holders/"

    def _get_page(self, page: int) -> Dict[str, Any]:
        params = {
            "key": self.api_key,
            "page-size": self.page_size,
            "page-number": page,
        }
        try:
            resp = self.client.get(self.url, params=params)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # The API key is part of the query string; keep it out of the message.
            raise DataSourceUnavailable(f"Covalent request failed: {type(e).__name__}") from e

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise DataSourceUnavailable("Invalid data format received from Covalent API")
        return data

    def fetch_holders(self) -> List[Holder]:
        holders: List[Holder] = []
        page = 0
        while True:
            data = self._get_page(page)
            holders.extend(parse_holder_items(data["items"], self.blacklist))
            pagination = data.get("pagination") or {}
            if not pagination.get("has_more"):
                break
            page += 1
            if page >= self.max_pages:
                raise DataSourceUnavailable(
                    f"Covalent still reports more holders after {self.max_pages} pages."
                )

        log.info("Fetched %d token holders.", len(holders))
        log.debug("First holders: %s", holders[:5])
        return holders
