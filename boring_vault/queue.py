#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Withdraw queue: request listing and time-derived status.

A request's status is never stored. It is recomputed from the request's
creation time, maturity delay and deadline delay against the caller's clock:

    maturity = creation + seconds_to_maturity
    deadline = creation + seconds_to_deadline   (or maturity + ... for MATURITY basis)
    EXPIRED           if now >= deadline
    READY_TO_FULFILL  if now >= maturity
    MATURING          otherwise
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from solders.pubkey import Pubkey

from .accounts import ACCOUNT_LAYOUTS, UserWithdrawState, WithdrawRequest, decode_account
from .config import DeadlineBasis
from .constants import DEFAULT_MAX_REQUESTS, DEFAULT_MAX_WORKERS, SHARE_DECIMALS
from .derivation import AddressDeriver, PubkeyLike, to_pubkey
from .logging_config import get_logger
from .vault import read_mint_decimals

logger = get_logger(__name__)


class RequestStatus(str, Enum):
    MATURING = "maturing"
    READY_TO_FULFILL = "ready_to_fulfill"
    EXPIRED = "expired"


@dataclass(frozen=True)
class StatusTimes:
    maturity_time: int
    deadline_time: int
    is_matured: bool
    is_expired: bool
    time_to_maturity: int
    time_to_deadline: int
    status: RequestStatus


def compute_status(
    creation_time: int,
    seconds_to_maturity: int,
    seconds_to_deadline: int,
    now: int,
    basis: DeadlineBasis = DeadlineBasis.CREATION,
) -> StatusTimes:
    maturity_time = creation_time + seconds_to_maturity
    if basis == DeadlineBasis.MATURITY:
        deadline_time = maturity_time + seconds_to_deadline
    else:
        deadline_time = creation_time + seconds_to_deadline

    is_matured = now >= maturity_time
    is_expired = now >= deadline_time

    if is_expired:
        status = RequestStatus.EXPIRED
    elif is_matured:
        status = RequestStatus.READY_TO_FULFILL
    else:
        status = RequestStatus.MATURING

    return StatusTimes(
        maturity_time=maturity_time,
        deadline_time=deadline_time,
        is_matured=is_matured,
        is_expired=is_expired,
        time_to_maturity=max(0, maturity_time - now),
        time_to_deadline=max(0, deadline_time - now),
        status=status,
    )


def request_status(
    request: WithdrawRequest, now: int, basis: DeadlineBasis = DeadlineBasis.CREATION
) -> StatusTimes:
    return compute_status(
        request.creation_time,
        request.seconds_to_maturity,
        request.seconds_to_deadline,
        now,
        basis,
    )


def nonce_range(last_nonce: int, max_count: int) -> range:
    """Nonces to scan: the newest ``max_count``, or all when ``max_count <= 0``."""
    if max_count > 0:
        start = max(0, last_nonce - max_count + 1)
    else:
        start = 0
    return range(start, last_nonce + 1)


def nonce_after(state: Optional[UserWithdrawState]) -> int:
    """``last_nonce`` is the newest request already created; 0 before any."""
    if state is None:
        return 0
    return state.last_nonce + 1


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    decimals: int


@dataclass(frozen=True)
class QueueStatus:
    """User-facing view of one pending request."""

    nonce: int
    user: str
    token_out: TokenMetadata
    shares_withdrawing: float
    assets_withdrawing: float
    creation_time: int
    seconds_to_maturity: int
    seconds_to_deadline: int
    status: RequestStatus
    error_code: int = 0
    transaction_hash_opened: str = ""


@dataclass(frozen=True)
class WithdrawRequestInfo:
    address: Pubkey
    request: WithdrawRequest
    timing: StatusTimes

    @property
    def nonce(self) -> int:
        return self.request.nonce

    @property
    def status(self) -> RequestStatus:
        return self.timing.status

    @property
    def is_matured(self) -> bool:
        return self.timing.is_matured

    @property
    def is_expired(self) -> bool:
        return self.timing.is_expired

    @property
    def time_to_maturity(self) -> int:
        return self.timing.time_to_maturity

    @property
    def time_to_deadline(self) -> int:
        return self.timing.time_to_deadline


@dataclass
class ListingResult:
    requests: List[WithdrawRequestInfo] = field(default_factory=list)
    failures: Dict[int, Exception] = field(default_factory=dict)

    @property
    def nonces(self) -> List[int]:
        return [info.nonce for info in self.requests]

    @property
    def complete(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class WithdrawStatusReport:
    exists: bool
    is_matured: bool = False
    is_expired: bool = False
    time_to_maturity: int = 0
    time_to_deadline: int = 0
    request: Optional[WithdrawRequestInfo] = None


def _system_clock() -> int:
    return int(time.time())


class WithdrawQueue:
    """Lists and inspects a user's withdraw requests.

    Args:
        read_client: Object exposing ``get_account(address) -> AccountBlob``
        deriver: Address deriver for the queue program
        clock: Returns the current unix time in seconds
        max_workers: Upper bound on concurrent request reads
        default_max_count: Requests returned when no count is given
        deadline_basis: How ``seconds_to_deadline`` is anchored
    """

    def __init__(
        self,
        read_client,
        deriver: AddressDeriver,
        clock: Optional[Callable[[], int]] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        default_max_count: int = DEFAULT_MAX_REQUESTS,
        deadline_basis: DeadlineBasis = DeadlineBasis.CREATION,
    ) -> None:
        self.read_client = read_client
        self.deriver = deriver
        self.clock = clock or _system_clock
        self.max_workers = max(1, int(max_workers))
        self.default_max_count = default_max_count
        self.deadline_basis = deadline_basis

    def get_user_withdraw_state(self, user: PubkeyLike) -> Optional[UserWithdrawState]:
        address = self.deriver.user_withdraw_state(user)
        blob = self.read_client.get_account(address)
        if not blob.exists:
            return None
        return decode_account(blob, ACCOUNT_LAYOUTS["UserWithdrawState"], address)

    def next_nonce(self, user: PubkeyLike) -> int:
        """Nonce the program will assign to the user's next request."""
        return nonce_after(self.get_user_withdraw_state(user))

    def _read_request(self, user: Pubkey, nonce: int, now: int) -> Optional[WithdrawRequestInfo]:
        address = self.deriver.withdraw_request(user, nonce)
        blob = self.read_client.get_account(address)
        if not blob.exists:
            logger.debug("Withdraw request %d for %s absent", nonce, user)
            return None
        request = decode_account(blob, ACCOUNT_LAYOUTS["WithdrawRequest"], address)
        return WithdrawRequestInfo(
            address=address,
            request=request,
            timing=request_status(request, now, self.deadline_basis),
        )

    def get_withdraw_request(self, user: PubkeyLike, nonce: int) -> Optional[WithdrawRequestInfo]:
        return self._read_request(to_pubkey(user), nonce, self.clock())

    def fetch_requests(
        self,
        user: PubkeyLike,
        vault_id: Optional[int] = None,
        max_count: Optional[int] = None,
    ) -> ListingResult:
        """Read the user's recent requests concurrently.

        A failed read is logged and recorded in ``failures`` keyed by nonce;
        the remaining reads still complete.
        """
        owner = to_pubkey(user)
        result = ListingResult()
        state = self.get_user_withdraw_state(owner)
        if state is None:
            return result

        if max_count is None:
            max_count = self.default_max_count
        nonces = nonce_range(state.last_nonce, max_count)
        now = self.clock()

        workers = min(self.max_workers, len(nonces))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._read_request, owner, nonce, now): nonce for nonce in nonces}
            for future in as_completed(futures):
                nonce = futures[future]
                try:
                    info = future.result()
                except Exception as exc:
                    logger.warning("Failed to read withdraw request %d for %s: %s", nonce, owner, exc)
                    result.failures[nonce] = exc
                    continue
                if info is None:
                    continue
                if vault_id is not None and info.request.vault_id != vault_id:
                    continue
                result.requests.append(info)

        result.requests.sort(key=lambda info: info.nonce)
        return result

    def list_requests(
        self,
        user: PubkeyLike,
        vault_id: Optional[int] = None,
        max_count: Optional[int] = None,
    ) -> List[WithdrawRequestInfo]:
        return self.fetch_requests(user, vault_id, max_count).requests

    def get_withdraw_status(self, user: PubkeyLike, nonce: int) -> WithdrawStatusReport:
        info = self.get_withdraw_request(user, nonce)
        if info is None:
            return WithdrawStatusReport(exists=False)
        return WithdrawStatusReport(
            exists=True,
            is_matured=info.is_matured,
            is_expired=info.is_expired,
            time_to_maturity=info.time_to_maturity,
            time_to_deadline=info.time_to_deadline,
            request=info,
        )

    def format_request(self, info: WithdrawRequestInfo, decimals: Optional[int] = None) -> QueueStatus:
        request = info.request
        if decimals is None:
            decimals = read_mint_decimals(self.read_client, request.asset_out)
        return QueueStatus(
            nonce=request.nonce,
            user=str(request.user),
            token_out=TokenMetadata(address=str(request.asset_out), decimals=decimals),
            shares_withdrawing=request.share_amount / 10 ** SHARE_DECIMALS,
            assets_withdrawing=request.asset_amount / 10 ** decimals,
            creation_time=request.creation_time,
            seconds_to_maturity=request.seconds_to_maturity,
            seconds_to_deadline=request.seconds_to_deadline,
            status=info.status,
        )

    def active_statuses(
        self,
        user: PubkeyLike,
        vault_id: Optional[int] = None,
        max_count: Optional[int] = None,
    ) -> List[QueueStatus]:
        """Formatted view of the user's requests that have not expired."""
        decimals_by_mint: Dict[Pubkey, int] = {}
        statuses: List[QueueStatus] = []
        for info in self.list_requests(user, vault_id, max_count):
            if info.is_expired:
                continue
            mint = info.request.asset_out
            if mint not in decimals_by_mint:
                decimals_by_mint[mint] = read_mint_decimals(self.read_client, mint)
            statuses.append(self.format_request(info, decimals_by_mint[mint]))
        return statuses
