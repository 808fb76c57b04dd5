#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Pyth pull-oracle cranker backed by the Hermes price service.

Hermes returns accumulator updates (``PNAU``) holding one Wormhole VAA and a
merkle proof per price message. Each message is posted to a fresh price
update account with the receiver program's ``post_update_atomic``
instruction, which verifies the VAA in the same transaction. The VAA is cut
down to a few guardian signatures so the instruction fits in one packet.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

import requests
from borsh_construct import Bytes, CStruct, U8, Vec
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..constants import (
    PYTH_GUARDIAN_SIGNATURES,
    PYTH_HERMES_URL,
    PYTH_RECEIVER_PROGRAM_ID,
    PYTH_WORMHOLE_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
)
from ..derivation import PubkeyLike, to_pubkey
from ..errors import OracleUnavailable
from ..instructions import instruction_discriminator
from ..logging_config import get_logger
from .base import CrankResult, OracleCranker

logger = get_logger(__name__)

DEFAULT_HERMES_TIMEOUT_S = 10.0

ACCUMULATOR_MAGIC = b"PNAU"
WORMHOLE_MERKLE_UPDATE = 0
VAA_SIGNATURE_SIZE = 66

PostUpdateAtomicArgs = CStruct(
    "vaa" / Bytes,
    "merkle_price_update" / CStruct(
        "message" / Bytes,
        "proof" / Vec(U8[20]),
    ),
    "treasury_id" / U8,
)


@dataclass(frozen=True)
class MerklePriceUpdate:
    message: bytes
    proof: List[bytes]


@dataclass(frozen=True)
class AccumulatorUpdate:
    vaa: bytes
    updates: List[MerklePriceUpdate]


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise ValueError(f"accumulator update truncated at byte {self.offset}")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u16_be(self) -> int:
        return int.from_bytes(self.take(2), "big")


def parse_accumulator_update(data: bytes) -> AccumulatorUpdate:
    """Split a Hermes ``PNAU`` payload into its VAA and merkle updates."""
    reader = _Reader(bytes(data))
    if reader.take(4) != ACCUMULATOR_MAGIC:
        raise ValueError("not an accumulator update")
    reader.take(2)  # major, minor version
    reader.take(reader.u8())  # trailing header
    update_type = reader.u8()
    if update_type != WORMHOLE_MERKLE_UPDATE:
        raise ValueError(f"unsupported accumulator update type {update_type}")

    vaa = reader.take(reader.u16_be())
    updates = []
    for _ in range(reader.u8()):
        message = reader.take(reader.u16_be())
        proof = [reader.take(20) for _ in range(reader.u8())]
        updates.append(MerklePriceUpdate(message=message, proof=proof))
    return AccumulatorUpdate(vaa=vaa, updates=updates)


def trim_vaa_signatures(vaa: bytes, keep: int = PYTH_GUARDIAN_SIGNATURES) -> bytes:
    """Keep the first ``keep`` guardian signatures of a VAA."""
    # version u8 | guardian set index u32 | signature count u8 | signatures | body
    count = vaa[5]
    if count <= keep:
        return vaa
    signatures_end = 6 + count * VAA_SIGNATURE_SIZE
    kept = vaa[6:6 + keep * VAA_SIGNATURE_SIZE]
    return vaa[:5] + bytes([keep]) + kept + vaa[signatures_end:]


def guardian_set_index(vaa: bytes) -> int:
    return int.from_bytes(vaa[1:5], "big")


class PythCranker(OracleCranker):
    """Posts fresh Pyth prices fetched from Hermes.

    Args:
        hermes_url: Hermes base URL, defaults to ``PYTH_HERMES_URL`` env or the public instance
        treasury_id: Receiver treasury shard that collects the posting fee
        guardian_signatures: Guardian signatures kept in each posted VAA
    """

    def __init__(
        self,
        hermes_url: Optional[str] = None,
        receiver_program_id: PubkeyLike = PYTH_RECEIVER_PROGRAM_ID,
        wormhole_program_id: PubkeyLike = PYTH_WORMHOLE_PROGRAM_ID,
        treasury_id: int = 0,
        guardian_signatures: int = PYTH_GUARDIAN_SIGNATURES,
        timeout: float = DEFAULT_HERMES_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.hermes_url = (hermes_url or os.getenv("PYTH_HERMES_URL") or PYTH_HERMES_URL).rstrip("/")
        self.receiver_program_id = to_pubkey(receiver_program_id)
        self.wormhole_program_id = to_pubkey(wormhole_program_id)
        self.treasury_id = int(treasury_id)
        self.guardian_signatures = int(guardian_signatures)
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_updates(self, feed_id_hex: str) -> List[bytes]:
        resp = self._session.get(
            f"{self.hermes_url}/v2/updates/price/latest",
            params={"ids[]": feed_id_hex, "encoding": "base64"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        return [base64.b64decode(item) for item in payload["binary"]["data"]]

    def _receiver_pda(self, *seeds: bytes) -> Pubkey:
        return Pubkey.find_program_address(list(seeds), self.receiver_program_id)[0]

    def post_update_instruction(
        self, payer: Pubkey, vaa: bytes, update: MerklePriceUpdate
    ) -> Tuple[Instruction, Keypair]:
        price_update = Keypair()
        guardian_set = Pubkey.find_program_address(
            [b"GuardianSet", guardian_set_index(vaa).to_bytes(4, "big")],
            self.wormhole_program_id,
        )[0]
        accounts = [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(guardian_set, is_signer=False, is_writable=False),
            AccountMeta(self._receiver_pda(b"config"), is_signer=False, is_writable=False),
            AccountMeta(self._receiver_pda(b"treasury", bytes([self.treasury_id])), is_signer=False, is_writable=True),
            AccountMeta(price_update.pubkey(), is_signer=True, is_writable=True),
            AccountMeta(Pubkey.from_string(SYSTEM_PROGRAM_ID), is_signer=False, is_writable=False),
            AccountMeta(payer, is_signer=True, is_writable=False),
        ]
        data = instruction_discriminator("post_update_atomic") + PostUpdateAtomicArgs.build({
            "vaa": vaa,
            "merkle_price_update": {
                "message": update.message,
                "proof": [list(node) for node in update.proof],
            },
            "treasury_id": self.treasury_id,
        })
        return Instruction(self.receiver_program_id, data, accounts), price_update

    def crank(
        self,
        feed: Pubkey,
        num_responses: int,
        payer: Optional[Pubkey] = None,
        feed_id: Optional[bytes] = None,
    ) -> CrankResult:
        if not feed_id:
            raise OracleUnavailable(feed, "asset has no Pyth feed id")
        if payer is None:
            raise OracleUnavailable(feed, "a fee payer is required to post a Pyth update")

        feed_id_hex = bytes(feed_id).hex()
        try:
            raw_updates = self.fetch_updates(feed_id_hex)
        except requests.RequestException as exc:
            raise OracleUnavailable(feed, f"hermes request failed: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise OracleUnavailable(feed, f"malformed hermes response: {exc}") from exc

        instructions: List[Instruction] = []
        signers: List[Keypair] = []
        try:
            for raw in raw_updates:
                accumulator = parse_accumulator_update(raw)
                vaa = trim_vaa_signatures(accumulator.vaa, self.guardian_signatures)
                for update in accumulator.updates:
                    ix, price_update = self.post_update_instruction(to_pubkey(payer), vaa, update)
                    instructions.append(ix)
                    signers.append(price_update)
        except (IndexError, ValueError) as exc:
            raise OracleUnavailable(feed, f"undecodable price update: {exc}") from exc

        if not instructions:
            raise OracleUnavailable(feed, "hermes returned no price updates")
        logger.debug("Pyth update for feed %s: %d instructions", feed_id_hex, len(instructions))
        return CrankResult(instructions=instructions, signers=signers)
