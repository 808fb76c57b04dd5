#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Error classes for derivation, decoding, composition and submission."""

from __future__ import annotations

from typing import Optional, Sequence


class VaultClientError(Exception):
    """Base class for every error raised by the client."""


class DerivationError(VaultClientError):
    """No valid program-derived address exists for the given seeds."""

    def __init__(self, message: str, program_id=None, seeds: Sequence[bytes] = ()):
        super().__init__(message)
        self.program_id = program_id
        self.seeds = [bytes(seed) for seed in seeds]


class DecodeError(VaultClientError):
    """Account bytes do not match the expected layout."""

    def __init__(self, message: str, address=None):
        super().__init__(message)
        self.address = address


class WrongAccountType(DecodeError):
    """Discriminator prefix differs from the expected account tag."""

    def __init__(self, address, expected: bytes, found: bytes, account_type: str = ""):
        label = account_type or "account"
        super().__init__(
            f"{address or '<unknown>'}: expected {label} tag {expected.hex()}, found {found.hex()}",
            address,
        )
        self.expected = expected
        self.found = found
        self.account_type = account_type


class TruncatedAccount(DecodeError):
    """Account data is shorter than the layout's minimum size."""

    def __init__(self, address, expected_size: int, actual_size: int, account_type: str = ""):
        label = account_type or "account"
        super().__init__(
            f"{address or '<unknown>'}: {label} needs {expected_size} bytes, got {actual_size}",
            address,
        )
        self.expected_size = expected_size
        self.actual_size = actual_size
        self.account_type = account_type


class AccountAbsent(VaultClientError):
    """A required account does not exist on chain."""

    def __init__(self, address, account_type: str = ""):
        super().__init__(f"{account_type or 'account'} not found: {address}")
        self.address = address
        self.account_type = account_type


class RpcError(VaultClientError):
    """JSON-RPC transport or protocol failure."""

    def __init__(self, message: str, method: str = "", code: Optional[int] = None):
        super().__init__(message)
        self.method = method
        self.code = code


class OracleUnavailable(VaultClientError):
    """The oracle cranker failed or timed out."""

    def __init__(self, feed, reason: str):
        super().__init__(f"oracle crank unavailable for {feed}: {reason}")
        self.feed = feed
        self.reason = reason


class OracleRequired(OracleUnavailable):
    """Oracle freshness was mandatory and could not be obtained."""


class ComposeError(VaultClientError):
    """A transaction could not be assembled."""


class CrankOrderingError(ComposeError):
    """A price-feed reader was placed before the feed's crank instructions."""

    def __init__(self, feed, crank_index: int, reader_index: int):
        super().__init__(
            f"instruction {reader_index} reads {feed} before crank instruction {crank_index}"
        )
        self.feed = feed
        self.crank_index = crank_index
        self.reader_index = reader_index


class TransactionTooLarge(ComposeError):
    """Serialized transaction exceeds the protocol ceiling after lookup tables."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"transaction is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit


class MissingSigner(ComposeError):
    """A required signature has no matching signer."""

    def __init__(self, pubkey):
        super().__init__(f"no signer supplied for required signature {pubkey}")
        self.pubkey = pubkey


class SubmissionError(VaultClientError):
    """Base class for transaction submission failures."""

    def __init__(self, message: str, signature: Optional[str] = None):
        super().__init__(message)
        self.signature = signature


class BlockhashExpiredError(SubmissionError):
    """Recent blockhash expired before the transaction landed."""


class InsufficientFundsError(SubmissionError):
    """Fee payer or token account lacks funds."""


class SimulationFailedError(SubmissionError):
    """Preflight simulation rejected the transaction."""

    def __init__(self, message: str, logs: Optional[Sequence[str]] = None, signature: Optional[str] = None):
        super().__init__(message, signature)
        self.logs = list(logs or [])


def classify_submission_error(error_message: str, logs: Optional[Sequence[str]] = None) -> SubmissionError:
    """Classify a submission failure from the RPC error message.

    Args:
        error_message: Message returned by ``sendTransaction``
        logs: Program logs from preflight simulation, when present

    Returns:
        The most specific SubmissionError subclass
    """
    message_lower = error_message.lower()

    if any(phrase in message_lower for phrase in [
        "blockhash not found",
        "block height exceeded",
        "blockhashnotfound",
    ]):
        return BlockhashExpiredError(error_message)

    if any(phrase in message_lower for phrase in [
        "insufficient funds",
        "insufficient lamports",
        "attempt to debit an account but found no record of a prior credit",
    ]):
        return InsufficientFundsError(error_message)

    if "simulation failed" in message_lower or "custom program error" in message_lower:
        return SimulationFailedError(error_message, logs=logs)

    return SubmissionError(error_message)
