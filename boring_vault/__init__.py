"""Client library for the Boring Vault and withdraw queue programs on Solana."""

from __future__ import annotations

from .accounts import (
    ACCOUNT_LAYOUTS,
    AssetData,
    UserWithdrawState,
    VaultConfig,
    VaultState,
    WithdrawRequest,
    decode,
    decode_account,
    encode_account,
    identify_account_type,
)
from .client import VaultClient
from .composer import ComposedTransaction, Encoding, OraclePolicy, TransactionComposer, select_encoding
from .config import ClientConfig, DeadlineBasis
from .derivation import AddressDeriver, QueueSeeds, derive_address
from .errors import VaultClientError
from .instructions import CancelWithdrawAction, DepositAction, DepositSolAction, QueueWithdrawAction
from .queue import RequestStatus, WithdrawQueue, compute_status
from .rpc import AccountBlob, SolanaRpcClient

__all__ = [
    "ACCOUNT_LAYOUTS",
    "AccountBlob",
    "AddressDeriver",
    "AssetData",
    "CancelWithdrawAction",
    "ClientConfig",
    "ComposedTransaction",
    "DeadlineBasis",
    "DepositAction",
    "DepositSolAction",
    "Encoding",
    "OraclePolicy",
    "QueueSeeds",
    "QueueWithdrawAction",
    "RequestStatus",
    "SolanaRpcClient",
    "TransactionComposer",
    "UserWithdrawState",
    "VaultClient",
    "VaultClientError",
    "VaultConfig",
    "VaultState",
    "WithdrawQueue",
    "WithdrawRequest",
    "compute_status",
    "decode",
    "decode_account",
    "derive_address",
    "encode_account",
    "identify_account_type",
    "select_encoding",
]
