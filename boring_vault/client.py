#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Per-process context object wiring the client's collaborators."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount

from .accounts import OracleSource
from .composer import Action, ComposedTransaction, OraclePolicy, TransactionComposer
from .config import ClientConfig
from .derivation import AddressDeriver, PubkeyLike, QueueSeeds
from .logging_config import get_logger
from .oracles import cranker_for_source
from .oracles.base import OracleCranker
from .queue import ListingResult, QueueStatus, WithdrawQueue, WithdrawRequestInfo, WithdrawStatusReport
from .rpc import SolanaRpcClient
from .vault import ShareBalance, VaultReader

logger = get_logger(__name__)


class VaultClient:
    """Entry point: build once, pass around.

    ``rpc`` must provide ``get_account`` and, for submission,
    ``get_latest_blockhash`` and ``send_raw_transaction``. When omitted a
    ``SolanaRpcClient`` is built from ``config``.

    With neither ``cranker`` nor ``crankers`` given, a Pyth cranker serves
    Pyth assets and, when ``oracle_gateway_url`` is set, a gateway cranker
    serves Switchboard assets.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        rpc=None,
        cranker: Optional[OracleCranker] = None,
        crankers: Optional[Mapping[OracleSource, OracleCranker]] = None,
        clock: Optional[Callable[[], int]] = None,
        queue_seeds: Optional[QueueSeeds] = None,
        lookup_tables: Iterable[AddressLookupTableAccount] = (),
    ) -> None:
        self.config = config or ClientConfig.from_env()
        self.rpc = rpc if rpc is not None else SolanaRpcClient.from_config(self.config)
        self.deriver = AddressDeriver(
            self.config.vault_program_id,
            self.config.queue_program_id,
            queue_seeds=queue_seeds,
        )
        self.vault = VaultReader(self.rpc, self.deriver)
        self.queue = WithdrawQueue(
            self.rpc,
            self.deriver,
            clock=clock,
            max_workers=self.config.max_workers,
            default_max_count=self.config.default_max_count,
            deadline_basis=self.config.deadline_basis,
        )
        self.composer = TransactionComposer(
            self.deriver,
            self.vault,
            self.queue,
            submit_client=self.rpc,
            cranker=cranker,
            crankers=crankers if crankers is not None or cranker is not None else self._default_crankers(),
            lookup_tables=lookup_tables,
            compute_unit_limit=self.config.compute_unit_limit,
            compute_unit_price=self.config.compute_unit_price,
            legacy_size_budget=self.config.legacy_size_budget,
            max_transaction_size=self.config.max_transaction_size,
        )
        logger.debug("VaultClient ready (rpc=%s)", self.config.rpc_url)

    def _default_crankers(self) -> Dict[OracleSource, OracleCranker]:
        pyth = cranker_for_source(OracleSource.PYTH, hermes_url=self.config.pyth_hermes_url)
        crankers: Dict[OracleSource, OracleCranker] = {
            OracleSource.PYTH: pyth,
            OracleSource.PYTH_V2: pyth,
        }
        if self.config.oracle_gateway_url:
            crankers[OracleSource.SWITCHBOARD_V2] = cranker_for_source(
                OracleSource.SWITCHBOARD_V2,
                url=self.config.oracle_gateway_url,
            )
        return crankers

    @classmethod
    def from_env(cls, **kwargs) -> "VaultClient":
        return cls(ClientConfig.from_env(), **kwargs)

    def close(self) -> None:
        close = getattr(self.rpc, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "VaultClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def default_policy(self, mandatory: bool = False) -> OraclePolicy:
        return OraclePolicy(mandatory=mandatory, timeout_s=self.config.oracle_timeout)

    # === Reads ===

    def list_requests(
        self, user: PubkeyLike, vault_id: Optional[int] = None, max_count: Optional[int] = None
    ) -> List[WithdrawRequestInfo]:
        return self.queue.list_requests(user, vault_id, max_count)

    def fetch_requests(
        self, user: PubkeyLike, vault_id: Optional[int] = None, max_count: Optional[int] = None
    ) -> ListingResult:
        return self.queue.fetch_requests(user, vault_id, max_count)

    def active_statuses(self, user: PubkeyLike, vault_id: Optional[int] = None) -> List[QueueStatus]:
        return self.queue.active_statuses(user, vault_id)

    def withdraw_status(self, user: PubkeyLike, nonce: int) -> WithdrawStatusReport:
        return self.queue.get_withdraw_status(user, nonce)

    def share_balance(self, owner: PubkeyLike, vault_id: int) -> ShareBalance:
        return self.vault.fetch_user_shares(owner, vault_id)

    def vault_balance(self, vault_id: int, mint: Optional[PubkeyLike] = None) -> int:
        return self.vault.vault_balance(vault_id, mint)

    # === Writes ===

    def compose(self, action: Action, oracle_policy: Optional[OraclePolicy] = None) -> ComposedTransaction:
        return self.composer.compose(action, oracle_policy)

    def submit(self, composed: ComposedTransaction, signers: Sequence) -> str:
        return self.composer.submit(composed, signers)
