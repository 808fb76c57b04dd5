#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Read-side helpers for vault, asset and token accounts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from solders.pubkey import Pubkey

from .accounts import ACCOUNT_LAYOUTS, AssetData, VaultState, decode_account
from .constants import DEFAULT_DECIMALS, TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from .derivation import AddressDeriver, PubkeyLike, to_pubkey
from .errors import AccountAbsent, DecodeError, RpcError
from .logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ShareBalance:
    raw: int
    decimals: int

    @property
    def formatted(self) -> str:
        if self.decimals <= 0:
            return str(self.raw)
        digits = str(self.raw).rjust(self.decimals + 1, "0")
        return f"{digits[:-self.decimals]}.{digits[-self.decimals:]}"

    @property
    def amount(self) -> Decimal:
        return Decimal(self.raw).scaleb(-self.decimals)


def read_mint_decimals(read_client, mint: PubkeyLike, default: int = DEFAULT_DECIMALS) -> int:
    """Decimals of an SPL mint, or ``default`` when it cannot be read.

    The account must decode as an initialized mint; a token account or any
    other data stored at ``mint`` falls back to ``default``.
    """
    address = to_pubkey(mint)
    try:
        blob = read_client.get_account(address)
    except RpcError as exc:
        logger.warning("Mint %s unreadable (%s), assuming %d decimals", address, exc, default)
        return default
    if not blob.exists:
        logger.warning("Mint %s missing, assuming %d decimals", address, default)
        return default
    try:
        info = decode_account(blob, ACCOUNT_LAYOUTS["Mint"], address)
    except DecodeError as exc:
        logger.warning("Account %s is not a mint (%s), assuming %d decimals", address, exc, default)
        return default
    if not info.is_initialized:
        logger.warning("Mint %s is not initialized, assuming %d decimals", address, default)
        return default
    return info.decimals


class VaultReader:
    """Reads vault-program accounts through an injected read client."""

    def __init__(self, read_client, deriver: AddressDeriver) -> None:
        self.read_client = read_client
        self.deriver = deriver

    def get_vault_state(self, vault_id: int) -> VaultState:
        address = self.deriver.vault_state(vault_id)
        blob = self.read_client.get_account(address)
        if not blob.exists:
            raise AccountAbsent(address, "BoringVault")
        return decode_account(blob, ACCOUNT_LAYOUTS["BoringVault"], address)

    def get_asset_data(self, vault_id: int, mint: PubkeyLike) -> Optional[AssetData]:
        vault_state = self.deriver.vault_state(vault_id)
        address = self.deriver.asset_data(vault_state, mint)
        blob = self.read_client.get_account(address)
        if not blob.exists:
            logger.debug("No asset data for mint %s in vault %d", mint, vault_id)
            return None
        return decode_account(blob, ACCOUNT_LAYOUTS["AssetData"], address)

    def share_mint(self, vault_id: int) -> Pubkey:
        return self.deriver.share_mint(self.deriver.vault_state(vault_id))

    def get_token_decimals(self, mint: PubkeyLike) -> int:
        return read_mint_decimals(self.read_client, mint)

    def fetch_user_shares(self, owner: PubkeyLike, vault_id: int) -> ShareBalance:
        """Share balance of ``owner``; an absent token account reads as zero."""
        share_mint = self.share_mint(vault_id)
        decimals = self.get_token_decimals(share_mint)
        ata = self.deriver.associated_token_address(owner, share_mint, TOKEN_2022_PROGRAM_ID)
        blob = self.read_client.get_account(ata)
        if not blob.exists:
            return ShareBalance(raw=0, decimals=decimals)
        try:
            account = decode_account(blob, ACCOUNT_LAYOUTS["TokenAccount"], ata)
        except DecodeError as exc:
            logger.warning("Share account %s undecodable: %s", ata, exc)
            return ShareBalance(raw=0, decimals=decimals)
        return ShareBalance(raw=account.amount, decimals=decimals)

    def vault_balance(
        self,
        vault_id: int,
        mint: Optional[PubkeyLike] = None,
        token_program: PubkeyLike = TOKEN_PROGRAM_ID,
    ) -> int:
        """Raw balance held by the vault's deposit sub-account.

        With no ``mint`` this is the lamport balance of the vault PDA,
        otherwise the amount in the vault's associated token account for
        ``mint``. An absent account reads as zero.
        """
        state = self.get_vault_state(vault_id)
        vault = self.deriver.vault(vault_id, state.config.deposit_sub_account)
        if mint is None:
            return self.read_client.get_account(vault).lamports

        ata = self.deriver.associated_token_address(vault, mint, token_program)
        blob = self.read_client.get_account(ata)
        if not blob.exists:
            return 0
        return decode_account(blob, ACCOUNT_LAYOUTS["TokenAccount"], ata).amount
