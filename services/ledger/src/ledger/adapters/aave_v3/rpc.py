"""Minimal JSON-RPC client and ABI word helpers for read-only contract calls."""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

WORD_HEX = 64


def encode_address(address: str) -> str:
    """Left-pad an address to one 32-byte ABI word (no 0x prefix)."""
    return address[2:].lower().zfill(WORD_HEX)


def encode_call(selector: str, *addresses: str) -> str:
    """Calldata for a function whose arguments are all addresses."""
    return selector + "".join(encode_address(a) for a in addresses)


def decode_words(hex_result: str) -> list[int] | None:
    """Split return data into 32-byte words as integers. None if it is not hex."""
    body = hex_result[2:] if hex_result.startswith("0x") else hex_result
    try:
        return [int(body[i:i + WORD_HEX], 16) for i in range(0, len(body) - WORD_HEX + 1, WORD_HEX)]
    except ValueError:
        return None


def decode_address(word: int) -> str:
    return "0x" + format(word, "040x")[-40:]


def decode_string(hex_result: str) -> str | None:
    """Decode an ABI `string` return value.

    Falls back to a NUL-padded bytes32 for legacy tokens (e.g. MKR) that
    return their symbol and name that way.
    """
    body = hex_result[2:] if hex_result.startswith("0x") else hex_result
    try:
        raw = bytes.fromhex(body)
    except ValueError:
        return None
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    if len(raw) < 64:
        return None
    offset = int.from_bytes(raw[0:32], "big")
    length = int.from_bytes(raw[offset:offset + 32], "big")
    data = raw[offset + 32:offset + 32 + length]
    if len(data) != length:
        return None
    return data.decode("utf-8", errors="replace")


def decode_address_array(hex_result: str) -> list[str] | None:
    """Decode an ABI `address[]` return value."""
    words = decode_words(hex_result)
    if words is None or len(words) < 2:
        return None
    start = words[0] // 32
    if start >= len(words):
        return None
    length = words[start]
    items = words[start + 1:start + 1 + length]
    if len(items) != length:
        return None
    return [decode_address(w) for w in items]


class JsonRpcClient:
    """Read-only JSON-RPC access to a node.

    Failures (transport errors, reverts, empty results) are reported as None,
    never raised.
    """

    def __init__(self, rpc_url: str, timeout: float = 10.0):
        self.rpc_url = rpc_url
        self.timeout = timeout

    def _request(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": 1,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"RPC {method} failed: {e}")
            return None

        if "error" in result:
            logger.debug(f"RPC {method} returned error: {result['error']}")
            return None
        return result.get("result")

    def call(self, to: str, data: str) -> str | None:
        """eth_call against the latest block. Returns hex return data or None."""
        hex_result = self._request("eth_call", [{"to": to, "data": data}, "latest"])
        if not isinstance(hex_result, str) or len(hex_result) <= 2:
            return None
        return hex_result

    def get_latest_block(self) -> tuple[int, int] | None:
        """Return (number, timestamp) of the latest block."""
        block = self._request("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict):
            return None
        try:
            return int(block["number"], 16), int(block["timestamp"], 16)
        except (KeyError, TypeError, ValueError):
            return None
