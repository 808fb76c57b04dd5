#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Global constants for the Boring Vault client.

Program ids, PDA seed strings and transaction size limits live here so the
derivation, decoding and composition modules agree on a single value.
"""

# === Program IDs ===
BORING_VAULT_PROGRAM_ID = "5ZRnXG4GsUMLaN7w2DtJV1cgLgcXHmuHCmJ2MxoorWCE"
BORING_QUEUE_PROGRAM_ID = "4yfE2VJQmxmcnUhrb8vdz7H8w313EZ3eJh5DbANBgtmd"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW7xWFVvhk6h8pTFbRdd"

# Zero address, used as the asset key of native SOL deposits
NATIVE_SOL_MINT = "11111111111111111111111111111111"

# === Known mainnet assets ===
JITO_SOL_MINT = "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn"
JITOSOL_SOL_SWITCHBOARD_FEED = "4Z1SLH9g4ikNBV8uP2ZctEouqjYmVqB2Tz5SZxKYBN7z"

# === Vault program seeds ===
SEED_PROGRAM_CONFIG = b"config"
SEED_VAULT_STATE = b"boring-vault-state"
SEED_VAULT = b"boring-vault"
SEED_SHARE_TOKEN = b"share-token"
SEED_ASSET_DATA = b"asset-data"

# === Queue program seeds ===
SEED_USER_WITHDRAW_STATE = b"boring-queue-user-withdraw-state"
SEED_WITHDRAW_REQUEST = b"boring-queue-withdraw-request"
SEED_QUEUE_STATE = b"boring-queue-state"
SEED_QUEUE = b"boring-queue"
SEED_WITHDRAW_ASSET_DATA = b"boring-queue-withdraw-asset-data"

# === Derivation ===
# Seed limits enforced by the runtime
MAX_SEEDS = 16
MAX_SEED_LEN = 32

# === Accounts ===
# Anchor discriminator width (bytes)
DISCRIMINATOR_SIZE = 8

# Share tokens are minted with a fixed precision
SHARE_DECIMALS = 9

# Fallback when a mint account cannot be read
DEFAULT_DECIMALS = 9

# Token-2022 extended accounts: account-type byte after the 165-byte base
SPL_ACCOUNT_TYPE_OFFSET = 165

# === Withdraw queue ===
# Most recent requests returned by default when listing
DEFAULT_MAX_REQUESTS = 7

# Default deadline for new withdraw requests (7 days)
DEFAULT_SECONDS_TO_DEADLINE = 86400 * 7

# === Transaction size ===
# Maximum serialized transaction size accepted by the network (bytes)
PACKET_DATA_SIZE = 1232

# Above this size a legacy transaction is re-encoded as v0 with lookup tables
LEGACY_SIZE_BUDGET = PACKET_DATA_SIZE

# Hard ceiling after lookup-table substitution
MAX_TRANSACTION_SIZE = PACKET_DATA_SIZE

# Ed25519 signature width (bytes)
SIGNATURE_SIZE = 64

# === Oracle ===
# Oracle responses requested from a crank by default
DEFAULT_ORACLE_RESPONSES = 3

# Upper bound on a single cranker call (seconds)
DEFAULT_ORACLE_TIMEOUT_S = 10.0

# === Pyth ===
PYTH_RECEIVER_PROGRAM_ID = "rec5EKMGg6MxZYaMdyBfgwp4d5rB9T1VQH5pJv5LtFJ"
PYTH_WORMHOLE_PROGRAM_ID = "HDwcJBJXjL9FpJ7UBsYBtaDjsBUhuLCUYoz3zr8SWWaQ"
PYTH_HERMES_URL = "https://hermes.pyth.network/"

# JITOSOL/SOL feed id (hex)
JITOSOL_SOL_PYTH_FEED_ID = "01d577b07031e12635d2fb86af6ae938bdc2b6dba9602d8e8af34d44587566fc"

# Guardian signatures kept in a VAA posted in a single transaction
PYTH_GUARDIAN_SIGNATURES = 5

# === Network defaults ===
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_RPC_TIMEOUT_S = 20.0
DEFAULT_COMMITMENT = "confirmed"

# Worker pool bound for concurrent account reads
DEFAULT_MAX_WORKERS = 8
