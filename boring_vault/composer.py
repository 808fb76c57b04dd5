#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Oracle-aware transaction composition.

``compose`` resolves an action's accounts, builds its base instructions,
prepends a best-effort oracle crank and picks the smallest encoding that fits.
``finalize`` fetches the recent blockhash as its last network step and signs.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .accounts import AssetData, OracleSource
from .constants import (
    DEFAULT_ORACLE_RESPONSES,
    DEFAULT_ORACLE_TIMEOUT_S,
    LEGACY_SIZE_BUDGET,
    MAX_TRANSACTION_SIZE,
    NATIVE_SOL_MINT,
    SIGNATURE_SIZE,
)
from .derivation import AddressDeriver, PubkeyLike, to_pubkey
from .errors import (
    ComposeError,
    CrankOrderingError,
    MissingSigner,
    OracleRequired,
    OracleUnavailable,
    TransactionTooLarge,
)
from .instructions import (
    CancelWithdrawAction,
    DepositAction,
    DepositSolAction,
    QueueWithdrawAction,
    cancel_withdraw_instruction,
    compute_budget_instructions,
    deposit_instruction,
    deposit_sol_instruction,
    reads_account,
    request_withdraw_instruction,
    setup_user_withdraw_state_instruction,
)
from .logging_config import get_logger
from .oracles.base import CrankResult, OracleCranker
from .queue import WithdrawQueue, nonce_after
from .vault import VaultReader

logger = get_logger(__name__)

Action = Union[DepositAction, DepositSolAction, QueueWithdrawAction, CancelWithdrawAction]


class Encoding(str, Enum):
    LEGACY = "legacy"
    VERSIONED = "versioned"


@dataclass(frozen=True)
class OraclePolicy:
    """Oracle freshness request for one composition.

    ``feed`` defaults to the price feed the action reads.
    """

    feed: Optional[PubkeyLike] = None
    num_responses: int = DEFAULT_ORACLE_RESPONSES
    mandatory: bool = False
    timeout_s: float = DEFAULT_ORACLE_TIMEOUT_S


@dataclass(frozen=True)
class ResolvedAction:
    payer: Pubkey
    instructions: List[Instruction]
    price_feed: Optional[Pubkey] = None
    asset: Optional[AssetData] = None


@dataclass
class ComposedTransaction:
    payer: Pubkey
    instructions: List[Instruction]
    base_instructions: List[Instruction]
    crank_instructions: List[Instruction] = field(default_factory=list)
    lookup_tables: List[AddressLookupTableAccount] = field(default_factory=list)
    encoding: Encoding = Encoding.LEGACY
    size: int = 0
    price_feed: Optional[Pubkey] = None
    oracle_error: Optional[OracleUnavailable] = None
    crank_signers: List = field(default_factory=list)

    @property
    def cranked(self) -> bool:
        return bool(self.crank_instructions)


def shortvec_length(value: int) -> int:
    """Bytes used by the compact-u16 length prefix."""
    size = 1
    while value >= 0x80:
        value >>= 7
        size += 1
    return size


def select_encoding(size: int, budget: int = LEGACY_SIZE_BUDGET) -> Encoding:
    return Encoding.LEGACY if size <= budget else Encoding.VERSIONED


def compile_message(
    payer: Pubkey,
    instructions: Sequence[Instruction],
    encoding: Encoding,
    blockhash: Hash,
    lookup_tables: Sequence[AddressLookupTableAccount] = (),
) -> Union[Message, MessageV0]:
    if encoding == Encoding.LEGACY:
        return Message.new_with_blockhash(list(instructions), payer, blockhash)
    return MessageV0.try_compile(payer, list(instructions), list(lookup_tables), blockhash)


def transaction_size(message: Union[Message, MessageV0]) -> int:
    """Wire size of ``message`` once every required signature is attached."""
    num_signatures = message.header.num_required_signatures
    return (
        shortvec_length(num_signatures)
        + SIGNATURE_SIZE * num_signatures
        + len(to_bytes_versioned(message))
    )


def verify_crank_ordering(
    instructions: Sequence[Instruction],
    crank_instructions: Sequence[Instruction],
    feed: PubkeyLike,
) -> None:
    """Ensure every crank for ``feed`` precedes every instruction reading it.

    Raises:
        CrankOrderingError: a reader of ``feed`` sits before the last crank
    """
    if not crank_instructions:
        return
    crank_positions = [
        index for index, ix in enumerate(instructions) if any(ix == crank for crank in crank_instructions)
    ]
    if not crank_positions:
        return
    last_crank = max(crank_positions)
    cranks = set(crank_positions)
    for index, ix in enumerate(instructions):
        if index in cranks:
            continue
        if reads_account(ix, feed) and index < last_crank:
            raise CrankOrderingError(to_pubkey(feed), last_crank, index)


class TransactionComposer:
    """Builds, sizes and signs vault and queue transactions.

    Collaborators are injected: ``vault_reader`` and ``withdraw_queue`` for
    dynamic account values, ``cranker`` for oracle freshness and
    ``submit_client`` for the blockhash and submission. ``crankers`` maps an
    asset's oracle source to the cranker serving it and takes precedence over
    ``cranker``.
    """

    def __init__(
        self,
        deriver: AddressDeriver,
        vault_reader: VaultReader,
        withdraw_queue: WithdrawQueue,
        submit_client=None,
        cranker: Optional[OracleCranker] = None,
        crankers: Optional[Mapping[OracleSource, OracleCranker]] = None,
        lookup_tables: Iterable[AddressLookupTableAccount] = (),
        compute_unit_limit: Optional[int] = None,
        compute_unit_price: Optional[int] = None,
        legacy_size_budget: int = LEGACY_SIZE_BUDGET,
        max_transaction_size: int = MAX_TRANSACTION_SIZE,
    ) -> None:
        self.deriver = deriver
        self.vault_reader = vault_reader
        self.withdraw_queue = withdraw_queue
        self.submit_client = submit_client
        self.cranker = cranker
        self.crankers = dict(crankers or {})
        self.lookup_tables = list(lookup_tables)
        self.compute_unit_limit = compute_unit_limit
        self.compute_unit_price = compute_unit_price
        self.legacy_size_budget = legacy_size_budget
        self.max_transaction_size = max_transaction_size

    # === Resolution ===

    def _asset_data(self, vault_id: int, mint: PubkeyLike) -> AssetData:
        asset = self.vault_reader.get_asset_data(vault_id, mint)
        if asset is None:
            raise ComposeError(f"asset {to_pubkey(mint)} is not configured for vault {vault_id}")
        return asset

    def resolve(self, action: Action) -> ResolvedAction:
        """Resolve dynamic accounts and build the base instructions."""
        if isinstance(action, DepositAction):
            state = self.vault_reader.get_vault_state(action.vault_id)
            asset = self._asset_data(action.vault_id, action.mint)
            ix = deposit_instruction(
                self.deriver,
                action,
                state.config.deposit_sub_account,
                state.config.share_mint,
                asset.price_feed,
            )
            return ResolvedAction(to_pubkey(action.payer), [ix], asset.price_feed, asset)

        if isinstance(action, DepositSolAction):
            state = self.vault_reader.get_vault_state(action.vault_id)
            asset = self._asset_data(action.vault_id, NATIVE_SOL_MINT)
            ix = deposit_sol_instruction(
                self.deriver,
                action,
                state.config.deposit_sub_account,
                state.config.share_mint,
                asset.price_feed,
                NATIVE_SOL_MINT,
            )
            return ResolvedAction(to_pubkey(action.payer), [ix], asset.price_feed, asset)

        if isinstance(action, QueueWithdrawAction):
            if action.share_amount <= 0:
                raise ComposeError("share_amount must be positive")
            asset = self._asset_data(action.vault_id, action.token_out)
            state = self.withdraw_queue.get_user_withdraw_state(action.owner)
            instructions = []
            if state is None:
                logger.debug("No withdraw state for %s, adding setup instruction", action.owner)
                instructions.append(setup_user_withdraw_state_instruction(self.deriver, action.owner))
            instructions.append(
                request_withdraw_instruction(self.deriver, action, nonce_after(state), asset.price_feed)
            )
            return ResolvedAction(to_pubkey(action.owner), instructions, asset.price_feed, asset)

        if isinstance(action, CancelWithdrawAction):
            ix = cancel_withdraw_instruction(self.deriver, action)
            return ResolvedAction(to_pubkey(action.owner), [ix], None)

        raise ComposeError(f"unsupported action: {type(action).__name__}")

    # === Oracle ===

    def cranker_for(self, asset: Optional[AssetData]) -> Optional[OracleCranker]:
        if asset is not None and asset.oracle_source in self.crankers:
            return self.crankers[asset.oracle_source]
        return self.cranker

    def _crank(
        self,
        feed: Pubkey,
        policy: OraclePolicy,
        payer: Pubkey,
        asset: Optional[AssetData] = None,
    ) -> Tuple[Optional[CrankResult], Optional[OracleUnavailable]]:
        cranker = self.cranker_for(asset)
        if cranker is None:
            error = OracleUnavailable(feed, "no cranker configured")
        else:
            pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="oracle-crank")
            future = pool.submit(
                cranker.crank,
                feed,
                policy.num_responses,
                payer=payer,
                feed_id=asset.feed_id if asset is not None else None,
            )
            try:
                return future.result(timeout=policy.timeout_s), None
            except FutureTimeout as exc:
                future.cancel()
                error = OracleUnavailable(feed, f"timed out after {policy.timeout_s}s")
                error.__cause__ = exc
            except OracleUnavailable as exc:
                error = exc
            except Exception as exc:
                error = OracleUnavailable(feed, str(exc) or type(exc).__name__)
                error.__cause__ = exc
            finally:
                pool.shutdown(wait=False)

        if policy.mandatory:
            raise OracleRequired(feed, error.reason) from error
        logger.warning("Oracle crank skipped for %s: %s", feed, error.reason)
        return None, error

    # === Encoding ===

    def _encode(
        self,
        payer: Pubkey,
        instructions: Sequence[Instruction],
        lookup_tables: Sequence[AddressLookupTableAccount],
    ) -> Tuple[Encoding, int]:
        placeholder = Hash.default()
        legacy_size = transaction_size(compile_message(payer, instructions, Encoding.LEGACY, placeholder))
        if select_encoding(legacy_size, self.legacy_size_budget) == Encoding.LEGACY:
            return Encoding.LEGACY, legacy_size

        versioned = compile_message(payer, instructions, Encoding.VERSIONED, placeholder, lookup_tables)
        versioned_size = transaction_size(versioned)
        logger.debug("Legacy size %d over budget, versioned size %d", legacy_size, versioned_size)
        if versioned_size > self.max_transaction_size:
            raise TransactionTooLarge(versioned_size, self.max_transaction_size)
        return Encoding.VERSIONED, versioned_size

    # === Public API ===

    def compose(self, action: Action, oracle_policy: Optional[OraclePolicy] = None) -> ComposedTransaction:
        """Assemble ``action`` into an ordered, size-checked transaction.

        Raises:
            OracleRequired: the policy is mandatory and the crank failed
            CrankOrderingError: a price reader would run before its crank
            TransactionTooLarge: no encoding fits the size ceiling
        """
        resolved = self.resolve(action)
        budget = compute_budget_instructions(self.compute_unit_limit, self.compute_unit_price)

        feed: Optional[Pubkey] = None
        crank = CrankResult()
        oracle_error: Optional[OracleUnavailable] = None
        if oracle_policy is not None:
            feed = to_pubkey(oracle_policy.feed) if oracle_policy.feed is not None else resolved.price_feed
            if feed is None:
                logger.debug("Oracle policy ignored, %s reads no price feed", type(action).__name__)
            else:
                result, oracle_error = self._crank(feed, oracle_policy, resolved.payer, resolved.asset)
                if result is not None:
                    crank = result

        instructions = budget + list(crank.instructions) + resolved.instructions
        if feed is not None:
            verify_crank_ordering(instructions, crank.instructions, feed)

        lookup_tables = self.lookup_tables + list(crank.lookup_tables)
        encoding, size = self._encode(resolved.payer, instructions, lookup_tables)

        logger.info(
            "Composed %s: %d instructions (%d crank), %s, %d bytes",
            type(action).__name__,
            len(instructions),
            len(crank.instructions),
            encoding.value,
            size,
        )
        return ComposedTransaction(
            payer=resolved.payer,
            instructions=instructions,
            base_instructions=resolved.instructions,
            crank_instructions=list(crank.instructions),
            lookup_tables=lookup_tables if encoding == Encoding.VERSIONED else [],
            encoding=encoding,
            size=size,
            price_feed=resolved.price_feed,
            oracle_error=oracle_error,
            crank_signers=list(crank.signers),
        )

    def finalize(self, composed: ComposedTransaction, signers: Sequence) -> VersionedTransaction:
        """Attach a fresh blockhash and the fee payer, then sign.

        Raises:
            MissingSigner: a required signature has no signer in ``signers``
        """
        if self.submit_client is None:
            raise ComposeError("no submit client configured")

        by_pubkey = {signer.pubkey(): signer for signer in list(signers) + composed.crank_signers}
        blockhash = self.submit_client.get_latest_blockhash()
        message = compile_message(
            composed.payer,
            composed.instructions,
            composed.encoding,
            blockhash,
            composed.lookup_tables,
        )
        required = message.account_keys[: message.header.num_required_signatures]
        missing = [key for key in required if key not in by_pubkey]
        if missing:
            raise MissingSigner(missing[0])

        payload = to_bytes_versioned(message)
        signatures = [by_pubkey[key].sign_message(payload) for key in required]
        return VersionedTransaction.populate(message, signatures)

    def submit(self, composed: ComposedTransaction, signers: Sequence) -> str:
        """Finalize and send once. Failures surface as SubmissionError."""
        transaction = self.finalize(composed, signers)
        signature = self.submit_client.send_raw_transaction(bytes(transaction))
        logger.info("Submitted %s transaction %s", composed.encoding.value, signature)
        return signature
