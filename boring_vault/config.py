#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Environment-driven configuration for the Boring Vault client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import (
    BORING_QUEUE_PROGRAM_ID,
    BORING_VAULT_PROGRAM_ID,
    DEFAULT_COMMITMENT,
    DEFAULT_MAX_REQUESTS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_ORACLE_TIMEOUT_S,
    DEFAULT_RPC_TIMEOUT_S,
    DEFAULT_RPC_URL,
    LEGACY_SIZE_BUDGET,
    MAX_TRANSACTION_SIZE,
    PYTH_HERMES_URL,
)
from .logging_config import get_logger

logger = get_logger(__name__)


class DeadlineBasis(str, Enum):
    """Reference point that ``seconds_to_deadline`` is added to."""

    CREATION = "creation"
    MATURITY = "maturity"


@dataclass(frozen=True)
class ClientConfig:
    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout: float = DEFAULT_RPC_TIMEOUT_S
    commitment: str = DEFAULT_COMMITMENT
    vault_program_id: str = BORING_VAULT_PROGRAM_ID
    queue_program_id: str = BORING_QUEUE_PROGRAM_ID
    max_workers: int = DEFAULT_MAX_WORKERS
    default_max_count: int = DEFAULT_MAX_REQUESTS
    oracle_timeout: float = DEFAULT_ORACLE_TIMEOUT_S
    compute_unit_price: Optional[int] = None
    compute_unit_limit: Optional[int] = None
    deadline_basis: DeadlineBasis = DeadlineBasis.CREATION
    legacy_size_budget: int = LEGACY_SIZE_BUDGET
    max_transaction_size: int = MAX_TRANSACTION_SIZE
    oracle_gateway_url: Optional[str] = None
    pyth_hermes_url: str = PYTH_HERMES_URL

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        rpc_url = os.getenv("SOLANA_RPC_URL") or os.getenv("RPC_URL") or DEFAULT_RPC_URL
        return cls(
            rpc_url=rpc_url.strip(),
            rpc_timeout=_env_float("RPC_TIMEOUT_S", DEFAULT_RPC_TIMEOUT_S),
            commitment=os.getenv("RPC_COMMITMENT", DEFAULT_COMMITMENT).strip() or DEFAULT_COMMITMENT,
            vault_program_id=os.getenv("BORING_VAULT_PROGRAM_ID", BORING_VAULT_PROGRAM_ID).strip(),
            queue_program_id=os.getenv("BORING_QUEUE_PROGRAM_ID", BORING_QUEUE_PROGRAM_ID).strip(),
            max_workers=max(1, _env_int("QUEUE_LIST_MAX_WORKERS", DEFAULT_MAX_WORKERS)),
            default_max_count=_env_int("QUEUE_LIST_MAX_COUNT", DEFAULT_MAX_REQUESTS),
            oracle_timeout=_env_float("ORACLE_TIMEOUT_S", DEFAULT_ORACLE_TIMEOUT_S),
            compute_unit_price=_env_optional_int("COMPUTE_UNIT_PRICE"),
            compute_unit_limit=_env_optional_int("COMPUTE_UNIT_LIMIT"),
            deadline_basis=_env_deadline_basis("DEADLINE_BASIS"),
            oracle_gateway_url=(os.getenv("ORACLE_GATEWAY_URL") or "").strip() or None,
            pyth_hermes_url=(os.getenv("PYTH_HERMES_URL") or "").strip() or PYTH_HERMES_URL,
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, ignoring", name, raw)
        return None
    return value if value >= 0 else None


def _env_deadline_basis(name: str) -> DeadlineBasis:
    raw = (os.getenv(name) or DeadlineBasis.CREATION.value).strip().lower()
    try:
        return DeadlineBasis(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using creation", name, raw)
        return DeadlineBasis.CREATION
