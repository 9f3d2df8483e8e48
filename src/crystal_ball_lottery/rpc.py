from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .errors import RpcError


class RpcClient:
    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self._next_id = 0

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _post(self, method: str, params: list) -> Dict[str, Any]:
        self._next_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise RpcError(f"RPC {method} returned a non-object reply: {data!r}")
        if data.get("error"):
            raise RpcError(f"RPC error in {method}: {data['error']}")
        if "result" not in data:
            raise RpcError(f"RPC {method} returned no result.")
        return data

    def _quantity(self, method: str, params: list) -> int:
        result = self._post(method, params)["result"]
        if not isinstance(result, str):
            raise RpcError(f"RPC {method} returned a non-hex quantity: {result!r}")
        return int(result, 16)

    def get_balance(self, address: str, block: str = "latest") -> int:
        """Returns the native balance in wei."""
        return self._quantity("eth_getBalance", [address, block])

    def get_gas_price(self) -> int:
        """Returns the node's current gas price in wei."""
        return self._quantity("eth_gasPrice", [])

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Returns the next nonce for address."""
        return self._quantity("eth_getTransactionCount", [address, block])

    def send_raw_transaction(self, raw_tx_hex: str) -> str:
        """Submits a signed transaction and returns its hash."""
        tx_hash = self._post("eth_sendRawTransaction", [raw_tx_hex])["result"]
        if not tx_hash:
            raise RpcError("RPC eth_sendRawTransaction returned no transaction hash.")
        return tx_hash
