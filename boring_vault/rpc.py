#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Minimal Solana JSON-RPC transport over HTTP."""

from __future__ import annotations

import base64
import itertools
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import requests
from solders.hash import Hash
from solders.pubkey import Pubkey

from .config import ClientConfig
from .derivation import PubkeyLike, to_pubkey
from .errors import RpcError, classify_submission_error
from .logging_config import get_logger

logger = get_logger(__name__)

@dataclass(frozen=True)
class AccountBlob:
    """Raw account as returned by the read client."""

    address: Pubkey
    data: bytes
    owner: Optional[Pubkey]
    exists: bool = True
    lamports: int = 0

    @classmethod
    def absent(cls, address: PubkeyLike) -> "AccountBlob":
        return cls(address=to_pubkey(address), data=b"", owner=None, exists=False)


def _blob_from_value(address: Pubkey, value: Optional[Dict[str, Any]]) -> AccountBlob:
    if not value:
        return AccountBlob.absent(address)
    raw = value.get("data") or ["", "base64"]
    encoded = raw[0] if isinstance(raw, list) else raw
    owner = value.get("owner")
    return AccountBlob(
        address=address,
        data=base64.b64decode(encoded) if encoded else b"",
        owner=Pubkey.from_string(owner) if owner else None,
        exists=True,
        lamports=int(value.get("lamports") or 0),
    )


class SolanaRpcClient:
    """Read and submit client backed by a JSON-RPC endpoint.

    Every call is a single round trip; callers own retries.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 20.0,
        commitment: str = "confirmed",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.commitment = commitment
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    @classmethod
    def from_config(cls, config: ClientConfig) -> "SolanaRpcClient":
        return cls(config.rpc_url, timeout=config.rpc_timeout, commitment=config.commitment)

    def close(self) -> None:
        self._session.close()

    def _call(self, method: str, params: Sequence[Any]) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            resp = self._session.post(self.url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise RpcError(f"{method} request failed: {exc}", method=method) from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise RpcError(f"{method} returned invalid JSON", method=method) from exc
        return body

    def _result(self, method: str, params: Sequence[Any]) -> Any:
        body = self._call(method, params)
        error = body.get("error")
        if error:
            raise RpcError(
                f"{method} failed: {error.get('message', error)}",
                method=method,
                code=error.get("code"),
            )
        return body.get("result")

    # === Read client ===

    def get_account(self, address: PubkeyLike) -> AccountBlob:
        pubkey = to_pubkey(address)
        result = self._result(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self.commitment}],
        )
        blob = _blob_from_value(pubkey, (result or {}).get("value"))
        logger.debug("getAccountInfo %s exists=%s size=%d", pubkey, blob.exists, len(blob.data))
        return blob

    # === Submit client ===

    def get_latest_blockhash(self) -> Hash:
        result = self._result("getLatestBlockhash", [{"commitment": self.commitment}])
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RpcError(f"getLatestBlockhash returned {result!r}", method="getLatestBlockhash") from exc

    def send_raw_transaction(self, raw: bytes, skip_preflight: bool = False) -> str:
        """Send a signed transaction once.

        Raises:
            SubmissionError: classified from the RPC error message and
                preflight logs
        """
        encoded = base64.b64encode(bytes(raw)).decode("ascii")
        options = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": self.commitment,
            "maxRetries": 0,
        }
        try:
            body = self._call("sendTransaction", [encoded, options])
        except RpcError as exc:
            raise classify_submission_error(str(exc)) from exc

        error = body.get("error")
        if error:
            data = error.get("data") or {}
            logs = data.get("logs") if isinstance(data, dict) else None
            raise classify_submission_error(str(error.get("message", error)), logs=logs)

        signature = body.get("result")
        logger.info("Submitted transaction %s", signature)
        return signature
