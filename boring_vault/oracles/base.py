#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Abstract oracle cranker interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey


@dataclass(frozen=True)
class CrankResult:
    """Crank instructions plus anything needed to land them.

    ``signers`` holds keypairs the crank instructions require besides the
    fee payer, such as a fresh price update account.
    """

    instructions: List[Instruction] = field(default_factory=list)
    lookup_tables: List[AddressLookupTableAccount] = field(default_factory=list)
    signers: List[Keypair] = field(default_factory=list)


class OracleCranker(ABC):
    @abstractmethod
    def crank(
        self,
        feed: Pubkey,
        num_responses: int,
        payer: Optional[Pubkey] = None,
        feed_id: Optional[bytes] = None,
    ) -> CrankResult:
        """Return the ordered instructions that refresh ``feed``, or raise.

        ``feed_id`` is the asset's 32-byte oracle feed identifier, used by
        oracles that address feeds by id rather than by account.
        """
