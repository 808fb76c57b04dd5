#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""HTTP crank gateway client.

The gateway answers ``POST <url>`` with a JSON body::

    {
      "instructions": [
        {"programId": "...", "accounts": [{"pubkey": "...", "isSigner": false,
         "isWritable": true}], "data": "<base64>"}
      ],
      "lookupTables": [{"key": "...", "addresses": ["...", "..."]}]
    }
"""

from __future__ import annotations

import base64
import os
from typing import Any, Dict, Optional

import requests
from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..derivation import PubkeyLike, to_pubkey
from ..errors import OracleUnavailable
from ..logging_config import get_logger
from .base import CrankResult, OracleCranker

logger = get_logger(__name__)

DEFAULT_GATEWAY_TIMEOUT_S = 10.0


def _parse_instruction(entry: Dict[str, Any]) -> Instruction:
    accounts = [
        AccountMeta(
            pubkey=Pubkey.from_string(meta["pubkey"]),
            is_signer=bool(meta.get("isSigner", False)),
            is_writable=bool(meta.get("isWritable", False)),
        )
        for meta in entry.get("accounts", [])
    ]
    return Instruction(
        Pubkey.from_string(entry["programId"]),
        base64.b64decode(entry.get("data", "")),
        accounts,
    )


def _parse_lookup_table(entry: Dict[str, Any]) -> AddressLookupTableAccount:
    return AddressLookupTableAccount(
        key=Pubkey.from_string(entry["key"]),
        addresses=[Pubkey.from_string(address) for address in entry.get("addresses", [])],
    )


def parse_crank_response(payload: Dict[str, Any]) -> CrankResult:
    instructions = [_parse_instruction(entry) for entry in payload.get("instructions", [])]
    lookup_tables = [_parse_lookup_table(entry) for entry in payload.get("lookupTables", [])]
    return CrankResult(instructions=instructions, lookup_tables=lookup_tables)


class GatewayCranker(OracleCranker):
    def __init__(
        self,
        url: Optional[str] = None,
        payer: Optional[PubkeyLike] = None,
        timeout: float = DEFAULT_GATEWAY_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url or os.getenv("ORACLE_GATEWAY_URL", "")
        if not self.url:
            raise ValueError("GatewayCranker requires a url or ORACLE_GATEWAY_URL")
        self.payer = to_pubkey(payer) if payer is not None else None
        self.timeout = timeout
        self._session = session or requests.Session()

    def crank(
        self,
        feed: Pubkey,
        num_responses: int,
        payer: Optional[Pubkey] = None,
        feed_id: Optional[bytes] = None,
    ) -> CrankResult:
        body: Dict[str, Any] = {"feed": str(feed), "numResponses": int(num_responses)}
        fee_payer = to_pubkey(payer) if payer is not None else self.payer
        if fee_payer is not None:
            body["payer"] = str(fee_payer)

        try:
            resp = self._session.post(self.url, json=body, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except requests.RequestException as exc:
            raise OracleUnavailable(feed, f"gateway request failed: {exc}") from exc
        except ValueError as exc:
            raise OracleUnavailable(feed, "gateway returned invalid JSON") from exc

        try:
            result = parse_crank_response(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise OracleUnavailable(feed, f"malformed gateway response: {exc}") from exc

        if not result.instructions:
            raise OracleUnavailable(feed, "gateway returned no instructions")
        logger.debug(
            "Gateway crank for %s: %d instructions, %d lookup tables",
            feed,
            len(result.instructions),
            len(result.lookup_tables),
        )
        return result
