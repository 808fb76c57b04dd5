#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Binary account layouts and the tag-dispatched decoder.

Anchor accounts start with an 8-byte discriminator, ``sha256("account:<Name>")``
truncated, followed by fixed-offset little-endian fields. SPL token and mint
accounts carry no discriminator. They are told apart by their base length
(82 for a mint, 165 for a token account) or, for Token-2022 accounts with
extensions, by the account-type byte that follows the 165-byte base.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, fields, is_dataclass
from enum import IntEnum
from typing import Any, Dict, Optional, Type, Union

from borsh_construct import Bool, CStruct, U16, U32, U64, U8
from solders.pubkey import Pubkey

from .constants import DISCRIMINATOR_SIZE, SPL_ACCOUNT_TYPE_OFFSET
from .errors import DecodeError, TruncatedAccount, WrongAccountType
from .logging_config import get_logger

logger = get_logger(__name__)

ADDRESS = U8[32]


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


class OracleSource(IntEnum):
    SWITCHBOARD_V2 = 0
    PYTH = 1
    PYTH_V2 = 2


# === Records ===


@dataclass(frozen=True)
class VaultConfig:
    vault_id: int
    authority: Pubkey
    pending_authority: Pubkey
    share_mint: Pubkey
    deposit_sub_account: int
    withdraw_sub_account: int
    paused: bool


@dataclass(frozen=True)
class TellerState:
    base_asset: Pubkey
    decimals: int
    exchange_rate_provider: Pubkey
    exchange_rate: int
    exchange_rate_high_water_mark: int
    fees_owed_in_base_asset: int
    total_shares_last_update: int
    last_update_timestamp: int
    payout_address: Pubkey
    allowed_exchange_rate_change_upper_bound: int
    allowed_exchange_rate_change_lower_bound: int
    minimum_update_delay_in_seconds: int
    platform_fee_bps: int
    performance_fee_bps: int
    withdraw_authority: Pubkey


@dataclass(frozen=True)
class ManagerState:
    strategist: Pubkey


@dataclass(frozen=True)
class VaultState:
    """Full vault account: config, teller and manager sections."""

    config: VaultConfig
    teller: TellerState
    manager: ManagerState


@dataclass(frozen=True)
class AssetData:
    allow_deposits: bool
    allow_withdrawals: bool
    share_premium_bps: int
    is_pegged_to_base_asset: bool
    price_feed: Pubkey
    inverse_price_feed: bool
    max_staleness: int
    min_samples: int
    oracle_source: OracleSource
    feed_id: bytes


@dataclass(frozen=True)
class UserWithdrawState:
    last_nonce: int


@dataclass(frozen=True)
class WithdrawRequest:
    vault_id: int
    asset_out: Pubkey
    share_amount: int
    asset_amount: int
    creation_time: int
    seconds_to_maturity: int
    seconds_to_deadline: int
    user: Pubkey
    nonce: int


@dataclass(frozen=True)
class MintInfo:
    mint_authority_option: int
    mint_authority: Pubkey
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority_option: int = 0
    freeze_authority: Pubkey = Pubkey.default()


@dataclass(frozen=True)
class TokenAccount:
    mint: Pubkey
    owner: Pubkey
    amount: int
    delegate_option: int = 0
    delegate: Pubkey = Pubkey.default()
    state: int = 1
    is_native_option: int = 0
    is_native: int = 0
    delegated_amount: int = 0
    close_authority_option: int = 0
    close_authority: Pubkey = Pubkey.default()


# === Wire structs ===

VaultConfigStruct = CStruct(
    "vault_id" / U64,
    "authority" / ADDRESS,
    "pending_authority" / ADDRESS,
    "share_mint" / ADDRESS,
    "deposit_sub_account" / U8,
    "withdraw_sub_account" / U8,
    "paused" / Bool,
)

TellerStateStruct = CStruct(
    "base_asset" / ADDRESS,
    "decimals" / U8,
    "exchange_rate_provider" / ADDRESS,
    "exchange_rate" / U64,
    "exchange_rate_high_water_mark" / U64,
    "fees_owed_in_base_asset" / U64,
    "total_shares_last_update" / U64,
    "last_update_timestamp" / U64,
    "payout_address" / ADDRESS,
    "allowed_exchange_rate_change_upper_bound" / U16,
    "allowed_exchange_rate_change_lower_bound" / U16,
    "minimum_update_delay_in_seconds" / U32,
    "platform_fee_bps" / U16,
    "performance_fee_bps" / U16,
    "withdraw_authority" / ADDRESS,
)

ManagerStateStruct = CStruct("strategist" / ADDRESS)

VaultStateStruct = CStruct(
    "config" / VaultConfigStruct,
    "teller" / TellerStateStruct,
    "manager" / ManagerStateStruct,
)

AssetDataStruct = CStruct(
    "allow_deposits" / Bool,
    "allow_withdrawals" / Bool,
    "share_premium_bps" / U16,
    "is_pegged_to_base_asset" / Bool,
    "price_feed" / ADDRESS,
    "inverse_price_feed" / Bool,
    "max_staleness" / U64,
    "min_samples" / U32,
    "oracle_source" / U8,
    "feed_id" / ADDRESS,
)

UserWithdrawStateStruct = CStruct("last_nonce" / U64)

WithdrawRequestStruct = CStruct(
    "vault_id" / U64,
    "asset_out" / ADDRESS,
    "share_amount" / U64,
    "asset_amount" / U64,
    "creation_time" / U64,
    "seconds_to_maturity" / U32,
    "seconds_to_deadline" / U32,
    "user" / ADDRESS,
    "nonce" / U64,
)

MintStruct = CStruct(
    "mint_authority_option" / U32,
    "mint_authority" / ADDRESS,
    "supply" / U64,
    "decimals" / U8,
    "is_initialized" / Bool,
    "freeze_authority_option" / U32,
    "freeze_authority" / ADDRESS,
)

TokenAccountStruct = CStruct(
    "mint" / ADDRESS,
    "owner" / ADDRESS,
    "amount" / U64,
    "delegate_option" / U32,
    "delegate" / ADDRESS,
    "state" / U8,
    "is_native_option" / U32,
    "is_native" / U64,
    "delegated_amount" / U64,
    "close_authority_option" / U32,
    "close_authority" / ADDRESS,
)


@dataclass(frozen=True)
class AccountLayout:
    name: str
    tag: bytes
    struct: Any
    record: Type
    # SPL account-type byte, 0 for Anchor accounts
    spl_kind: int = 0

    @property
    def min_size(self) -> int:
        return len(self.tag) + self.struct.sizeof()


def _anchor_layout(name: str, struct: Any, record: Type) -> AccountLayout:
    return AccountLayout(name=name, tag=account_discriminator(name), struct=struct, record=record)


# Account type name -> layout
ACCOUNT_LAYOUTS: Dict[str, AccountLayout] = {
    "BoringVault": _anchor_layout("BoringVault", VaultStateStruct, VaultState),
    "AssetData": _anchor_layout("AssetData", AssetDataStruct, AssetData),
    "UserWithdrawState": _anchor_layout("UserWithdrawState", UserWithdrawStateStruct, UserWithdrawState),
    "WithdrawRequest": _anchor_layout("WithdrawRequest", WithdrawRequestStruct, WithdrawRequest),
    "Mint": AccountLayout(name="Mint", tag=b"", struct=MintStruct, record=MintInfo, spl_kind=1),
    "TokenAccount": AccountLayout(
        name="TokenAccount", tag=b"", struct=TokenAccountStruct, record=TokenAccount, spl_kind=2
    ),
}

_NESTED_RECORDS: Dict[str, Type] = {
    "VaultConfig": VaultConfig,
    "TellerState": TellerState,
    "ManagerState": ManagerState,
}


def _from_container(record: Type, container: Any) -> Any:
    values = {}
    for field in fields(record):
        raw = container[field.name]
        if field.type == "Pubkey":
            values[field.name] = Pubkey.from_bytes(bytes(raw))
        elif field.type == "bytes":
            values[field.name] = bytes(raw)
        elif field.type == "bool":
            values[field.name] = bool(raw)
        elif field.type == "OracleSource":
            values[field.name] = OracleSource(int(raw))
        elif field.type in _NESTED_RECORDS:
            values[field.name] = _from_container(_NESTED_RECORDS[field.type], raw)
        else:
            values[field.name] = int(raw)
    return record(**values)


def _to_container(record: Any) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field in fields(record):
        value = getattr(record, field.name)
        if isinstance(value, Pubkey):
            values[field.name] = list(bytes(value))
        elif isinstance(value, (bytes, bytearray)):
            values[field.name] = list(value)
        elif is_dataclass(value):
            values[field.name] = _to_container(value)
        elif isinstance(value, bool):
            values[field.name] = value
        else:
            values[field.name] = int(value)
    return values


def _blob_bytes(blob: Any) -> bytes:
    data = getattr(blob, "data", blob)
    return bytes(data)


def _check_spl_kind(data: bytes, layout: AccountLayout, address: Any) -> None:
    if len(data) <= layout.min_size:
        return
    kind = data[SPL_ACCOUNT_TYPE_OFFSET:SPL_ACCOUNT_TYPE_OFFSET + 1]
    if kind != bytes([layout.spl_kind]):
        raise WrongAccountType(address, bytes([layout.spl_kind]), kind, layout.name)


def decode_account(blob: Any, layout: AccountLayout, address: Any = None) -> Any:
    """Decode ``blob`` with ``layout`` after checking its tag and length.

    Args:
        blob: Raw bytes, or any object with a ``data`` attribute
        layout: Expected account layout
        address: Account address, carried into decode errors

    Raises:
        TruncatedAccount: data shorter than the tag or the layout minimum
        WrongAccountType: discriminator differs from ``layout.tag``, or an SPL
            blob is of the other SPL kind
    """
    if address is None:
        address = getattr(blob, "address", None)
    data = _blob_bytes(blob)
    tag_size = len(layout.tag)

    if len(data) < tag_size:
        raise TruncatedAccount(address, layout.min_size, len(data), layout.name)
    found = data[:tag_size]
    if found != layout.tag:
        raise WrongAccountType(address, layout.tag, found, layout.name)
    if layout.spl_kind:
        _check_spl_kind(data, layout, address)
    if len(data) < layout.min_size:
        raise TruncatedAccount(address, layout.min_size, len(data), layout.name)

    container = layout.struct.parse(data[tag_size:layout.min_size])
    return _from_container(layout.record, container)


def decode(blob: Any, account_type: str, address: Any = None) -> Any:
    """Decode through the ``ACCOUNT_LAYOUTS`` dispatch table."""
    layout = ACCOUNT_LAYOUTS.get(account_type)
    if layout is None:
        raise DecodeError(f"unknown account type: {account_type}", address)
    return decode_account(blob, layout, address)


def encode_account(record: Any, account_type: Optional[str] = None, padding: int = 0) -> bytes:
    """Serialize a record back into account bytes, tag included."""
    if account_type is None:
        account_type = next(
            (name for name, layout in ACCOUNT_LAYOUTS.items() if layout.record is type(record)),
            None,
        )
    if account_type is None or account_type not in ACCOUNT_LAYOUTS:
        raise DecodeError(f"no layout for {type(record).__name__}")
    layout = ACCOUNT_LAYOUTS[account_type]
    return layout.tag + layout.struct.build(_to_container(record)) + bytes(padding)


def identify_account_type(data: Union[bytes, Any]) -> Optional[str]:
    """Return the Anchor account type whose discriminator prefixes ``data``."""
    raw = _blob_bytes(data)
    if len(raw) < DISCRIMINATOR_SIZE:
        return None
    prefix = raw[:DISCRIMINATOR_SIZE]
    for name, layout in ACCOUNT_LAYOUTS.items():
        if layout.tag and layout.tag == prefix:
            return name
    return None
