#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Program-derived address resolution for the vault and queue programs.

Every account the two programs own lives at an address computed from a
program id and an ordered list of seeds. The bump byte is searched from 255
downward and the first hash that does not land on the ed25519 curve wins, so
no private key can ever sign for the result.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple, Union

from solders.pubkey import Pubkey

from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    BORING_QUEUE_PROGRAM_ID,
    BORING_VAULT_PROGRAM_ID,
    MAX_SEED_LEN,
    MAX_SEEDS,
    SEED_ASSET_DATA,
    SEED_PROGRAM_CONFIG,
    SEED_QUEUE,
    SEED_QUEUE_STATE,
    SEED_SHARE_TOKEN,
    SEED_USER_WITHDRAW_STATE,
    SEED_VAULT,
    SEED_VAULT_STATE,
    SEED_WITHDRAW_ASSET_DATA,
    SEED_WITHDRAW_REQUEST,
    TOKEN_2022_PROGRAM_ID,
)
from .errors import DerivationError
from .logging_config import get_logger

logger = get_logger(__name__)

PubkeyLike = Union[Pubkey, str, bytes]


def to_pubkey(value: PubkeyLike) -> Pubkey:
    """Coerce a base58 string, raw 32 bytes or Pubkey into a Pubkey."""
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, (bytes, bytearray)):
        return Pubkey.from_bytes(bytes(value))
    return Pubkey.from_string(str(value).strip())


def u64_le(value: int) -> bytes:
    return int(value).to_bytes(8, "little")


def u8(value: int) -> bytes:
    return int(value).to_bytes(1, "little")


def _validate_seeds(program_id: Pubkey, seeds: Sequence[bytes]) -> None:
    # The bump occupies one seed slot
    if len(seeds) + 1 > MAX_SEEDS:
        raise DerivationError(
            f"too many seeds: {len(seeds)} (max {MAX_SEEDS - 1} plus bump)",
            program_id=program_id,
            seeds=seeds,
        )
    for index, seed in enumerate(seeds):
        if len(seed) > MAX_SEED_LEN:
            raise DerivationError(
                f"seed {index} is {len(seed)} bytes (max {MAX_SEED_LEN})",
                program_id=program_id,
                seeds=seeds,
            )


def derive_address(program_id: PubkeyLike, seeds: Iterable[bytes]) -> Tuple[Pubkey, int]:
    """Find the canonical program-derived address and its bump.

    Raises:
        DerivationError: seeds violate the runtime limits, or no bump in
            ``[0, 255]`` yields an off-curve address
    """
    program = to_pubkey(program_id)
    seed_list = [bytes(seed) for seed in seeds]
    _validate_seeds(program, seed_list)

    try:
        return Pubkey.find_program_address(seed_list, program)
    except ValueError as exc:
        raise DerivationError(
            f"no off-curve address for program {program}: {exc}",
            program_id=program,
            seeds=seed_list,
        ) from exc


@dataclass(frozen=True)
class QueueSeeds:
    """Seed prefixes of the per-user queue accounts."""

    user_withdraw_state: bytes = SEED_USER_WITHDRAW_STATE
    withdraw_request: bytes = SEED_WITHDRAW_REQUEST

    @classmethod
    def short(cls) -> "QueueSeeds":
        return cls(user_withdraw_state=b"user-withdraw-state", withdraw_request=b"withdraw-request")


class AddressDeriver:
    """Resolves every address the vault and queue programs use.

    Results are memoized in a bounded LRU; the cache only stores pure
    function outputs so one instance may be shared across threads.
    """

    def __init__(
        self,
        vault_program_id: PubkeyLike = BORING_VAULT_PROGRAM_ID,
        queue_program_id: PubkeyLike = BORING_QUEUE_PROGRAM_ID,
        queue_seeds: QueueSeeds | None = None,
        cache_size: int = 1024,
    ) -> None:
        self.vault_program_id = to_pubkey(vault_program_id)
        self.queue_program_id = to_pubkey(queue_program_id)
        self.queue_seeds = queue_seeds or QueueSeeds()
        self._cache_size = max(0, int(cache_size))
        self._cache: "OrderedDict[tuple, Tuple[Pubkey, int]]" = OrderedDict()
        self._lock = threading.Lock()

    def derive(self, program_id: PubkeyLike, seeds: Sequence[bytes]) -> Tuple[Pubkey, int]:
        program = to_pubkey(program_id)
        key = (bytes(program), tuple(bytes(seed) for seed in seeds))
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                return cached

        result = derive_address(program, key[1])
        logger.debug("Derived %s (bump %d) under %s", result[0], result[1], program)

        if self._cache_size:
            with self._lock:
                self._cache[key] = result
                if len(self._cache) > self._cache_size:
                    self._cache.popitem(last=False)
        return result

    def _vault_pda(self, *seeds: bytes) -> Pubkey:
        return self.derive(self.vault_program_id, seeds)[0]

    def _queue_pda(self, *seeds: bytes) -> Pubkey:
        return self.derive(self.queue_program_id, seeds)[0]

    # === Vault program ===

    def program_config(self) -> Pubkey:
        return self._vault_pda(SEED_PROGRAM_CONFIG)

    def vault_state(self, vault_id: int) -> Pubkey:
        return self._vault_pda(SEED_VAULT_STATE, u64_le(vault_id))

    def vault(self, vault_id: int, sub_account: int) -> Pubkey:
        return self._vault_pda(SEED_VAULT, u64_le(vault_id), u8(sub_account))

    def share_mint(self, vault_state: PubkeyLike) -> Pubkey:
        return self._vault_pda(SEED_SHARE_TOKEN, bytes(to_pubkey(vault_state)))

    def asset_data(self, vault_state: PubkeyLike, mint: PubkeyLike) -> Pubkey:
        return self._vault_pda(SEED_ASSET_DATA, bytes(to_pubkey(vault_state)), bytes(to_pubkey(mint)))

    # === Queue program ===

    def user_withdraw_state(self, owner: PubkeyLike) -> Pubkey:
        return self._queue_pda(self.queue_seeds.user_withdraw_state, bytes(to_pubkey(owner)))

    def withdraw_request(self, owner: PubkeyLike, nonce: int) -> Pubkey:
        return self._queue_pda(self.queue_seeds.withdraw_request, bytes(to_pubkey(owner)), u64_le(nonce))

    def queue_state(self, vault_id: int) -> Pubkey:
        return self._queue_pda(SEED_QUEUE_STATE, u64_le(vault_id))

    def queue(self, vault_id: int) -> Pubkey:
        return self._queue_pda(SEED_QUEUE, u64_le(vault_id))

    def withdraw_asset_data(self, vault_id: int, mint: PubkeyLike) -> Pubkey:
        return self._queue_pda(SEED_WITHDRAW_ASSET_DATA, u64_le(vault_id), bytes(to_pubkey(mint)))

    # === Token accounts ===

    def associated_token_address(
        self,
        owner: PubkeyLike,
        mint: PubkeyLike,
        token_program: PubkeyLike = TOKEN_2022_PROGRAM_ID,
    ) -> Pubkey:
        seeds = (bytes(to_pubkey(owner)), bytes(to_pubkey(token_program)), bytes(to_pubkey(mint)))
        return self.derive(ASSOCIATED_TOKEN_PROGRAM_ID, seeds)[0]
