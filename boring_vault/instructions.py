#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Instruction builders for vault deposits and queue withdrawals."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import List, Optional

from borsh_construct import CStruct, U16, U32, U64
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    DEFAULT_SECONDS_TO_DEADLINE,
    SYSTEM_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from .derivation import AddressDeriver, PubkeyLike, to_pubkey


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


DepositArgs = CStruct(
    "vault_id" / U64,
    "deposit_amount" / U64,
    "min_mint_amount" / U64,
)

RequestWithdrawArgs = CStruct(
    "vault_id" / U64,
    "share_amount" / U64,
    "discount" / U16,
    "seconds_to_deadline" / U32,
)

CancelWithdrawArgs = CStruct("request_id" / U64)


# === Actions ===


@dataclass(frozen=True)
class DepositAction:
    """Deposit an SPL token into a vault in exchange for shares."""

    payer: PubkeyLike
    vault_id: int
    mint: PubkeyLike
    deposit_amount: int
    min_mint_amount: int = 0
    token_program: PubkeyLike = TOKEN_PROGRAM_ID


@dataclass(frozen=True)
class DepositSolAction:
    payer: PubkeyLike
    vault_id: int
    deposit_amount: int
    min_mint_amount: int = 0


@dataclass(frozen=True)
class QueueWithdrawAction:
    """Queue shares for withdrawal into ``token_out``.

    ``discount`` is in basis points.
    """

    owner: PubkeyLike
    vault_id: int
    token_out: PubkeyLike
    share_amount: int
    discount: int = 0
    seconds_to_deadline: int = DEFAULT_SECONDS_TO_DEADLINE

    @property
    def payer(self) -> PubkeyLike:
        return self.owner


@dataclass(frozen=True)
class CancelWithdrawAction:
    owner: PubkeyLike
    vault_id: int
    request_id: int

    @property
    def payer(self) -> PubkeyLike:
        return self.owner


def _meta(pubkey: PubkeyLike, writable: bool = False, signer: bool = False) -> AccountMeta:
    return AccountMeta(pubkey=to_pubkey(pubkey), is_signer=signer, is_writable=writable)


# === Vault program ===


def deposit_instruction(
    deriver: AddressDeriver,
    action: DepositAction,
    deposit_sub_account: int,
    share_mint: Pubkey,
    price_feed: Pubkey,
) -> Instruction:
    payer = to_pubkey(action.payer)
    mint = to_pubkey(action.mint)
    token_program = to_pubkey(action.token_program)
    vault_state = deriver.vault_state(action.vault_id)
    vault = deriver.vault(action.vault_id, deposit_sub_account)

    accounts = [
        _meta(payer, writable=True, signer=True),
        _meta(token_program),
        _meta(TOKEN_2022_PROGRAM_ID),
        _meta(SYSTEM_PROGRAM_ID),
        _meta(ASSOCIATED_TOKEN_PROGRAM_ID),
        _meta(vault_state),
        _meta(vault, writable=True),
        _meta(mint),
        _meta(deriver.asset_data(vault_state, mint)),
        _meta(deriver.associated_token_address(payer, mint, token_program), writable=True),
        _meta(deriver.associated_token_address(vault, mint, token_program), writable=True),
        _meta(share_mint, writable=True),
        _meta(deriver.associated_token_address(payer, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(price_feed),
    ]
    data = instruction_discriminator("deposit") + DepositArgs.build({
        "vault_id": action.vault_id,
        "deposit_amount": action.deposit_amount,
        "min_mint_amount": action.min_mint_amount,
    })
    return Instruction(deriver.vault_program_id, data, accounts)


def deposit_sol_instruction(
    deriver: AddressDeriver,
    action: DepositSolAction,
    deposit_sub_account: int,
    share_mint: Pubkey,
    price_feed: Pubkey,
    native_mint: PubkeyLike,
) -> Instruction:
    payer = to_pubkey(action.payer)
    vault_state = deriver.vault_state(action.vault_id)

    accounts = [
        _meta(payer, writable=True, signer=True),
        _meta(TOKEN_2022_PROGRAM_ID),
        _meta(SYSTEM_PROGRAM_ID),
        _meta(vault_state),
        _meta(deriver.vault(action.vault_id, deposit_sub_account), writable=True),
        _meta(deriver.asset_data(vault_state, native_mint)),
        _meta(share_mint, writable=True),
        _meta(deriver.associated_token_address(payer, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(price_feed),
    ]
    data = instruction_discriminator("deposit_sol") + DepositArgs.build({
        "vault_id": action.vault_id,
        "deposit_amount": action.deposit_amount,
        "min_mint_amount": action.min_mint_amount,
    })
    return Instruction(deriver.vault_program_id, data, accounts)


# === Queue program ===


def setup_user_withdraw_state_instruction(deriver: AddressDeriver, owner: PubkeyLike) -> Instruction:
    """Create the per-user nonce counter; required once before the first request."""
    owner = to_pubkey(owner)
    accounts = [
        _meta(owner, writable=True, signer=True),
        _meta(deriver.user_withdraw_state(owner), writable=True),
        _meta(SYSTEM_PROGRAM_ID),
    ]
    return Instruction(deriver.queue_program_id, instruction_discriminator("setup_user_withdraw_state"), accounts)


def request_withdraw_instruction(
    deriver: AddressDeriver,
    action: QueueWithdrawAction,
    nonce: int,
    price_feed: Pubkey,
) -> Instruction:
    """Build ``request_withdraw``: 16 accounts, owner first as signer."""
    owner = to_pubkey(action.owner)
    token_out = to_pubkey(action.token_out)
    vault_state = deriver.vault_state(action.vault_id)
    share_mint = deriver.share_mint(vault_state)
    queue = deriver.queue(action.vault_id)

    accounts = [
        _meta(owner, writable=True, signer=True),
        _meta(deriver.queue_state(action.vault_id)),
        _meta(token_out),
        _meta(deriver.withdraw_asset_data(action.vault_id, token_out)),
        _meta(deriver.user_withdraw_state(owner), writable=True),
        _meta(deriver.withdraw_request(owner, nonce), writable=True),
        _meta(queue),
        _meta(share_mint),
        _meta(deriver.associated_token_address(owner, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(deriver.associated_token_address(queue, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(TOKEN_2022_PROGRAM_ID),
        _meta(SYSTEM_PROGRAM_ID),
        _meta(deriver.vault_program_id),
        _meta(vault_state),
        _meta(deriver.asset_data(vault_state, token_out)),
        _meta(price_feed),
    ]
    data = instruction_discriminator("request_withdraw") + RequestWithdrawArgs.build({
        "vault_id": action.vault_id,
        "share_amount": action.share_amount,
        "discount": action.discount,
        "seconds_to_deadline": action.seconds_to_deadline,
    })
    return Instruction(deriver.queue_program_id, data, accounts)


def cancel_withdraw_instruction(deriver: AddressDeriver, action: CancelWithdrawAction) -> Instruction:
    owner = to_pubkey(action.owner)
    vault_state = deriver.vault_state(action.vault_id)
    share_mint = deriver.share_mint(vault_state)
    queue = deriver.queue(action.vault_id)

    accounts = [
        _meta(owner, writable=True, signer=True),
        _meta(share_mint),
        _meta(deriver.queue_state(action.vault_id)),
        _meta(deriver.withdraw_request(owner, action.request_id), writable=True),
        _meta(queue),
        _meta(deriver.associated_token_address(owner, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(deriver.associated_token_address(queue, share_mint, TOKEN_2022_PROGRAM_ID), writable=True),
        _meta(TOKEN_2022_PROGRAM_ID),
        _meta(SYSTEM_PROGRAM_ID),
    ]
    data = instruction_discriminator("cancel_withdraw") + CancelWithdrawArgs.build({
        "request_id": action.request_id,
    })
    return Instruction(deriver.queue_program_id, data, accounts)


# === Compute budget ===


def compute_budget_instructions(
    unit_limit: Optional[int] = None, unit_price: Optional[int] = None
) -> List[Instruction]:
    instructions: List[Instruction] = []
    if unit_limit is not None:
        instructions.append(set_compute_unit_limit(unit_limit))
    if unit_price is not None:
        instructions.append(set_compute_unit_price(unit_price))
    return instructions


def reads_account(instruction: Instruction, address: PubkeyLike) -> bool:
    target = to_pubkey(address)
    return any(meta.pubkey == target for meta in instruction.accounts)
