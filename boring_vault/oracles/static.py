#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Cranker that serves pre-built instruction bundles."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from solders.pubkey import Pubkey

from ..derivation import PubkeyLike, to_pubkey
from ..errors import OracleUnavailable
from .base import CrankResult, OracleCranker


class StaticCranker(OracleCranker):
    """Returns a fixed bundle per feed.

    Useful for offline composition, where crank instructions were fetched
    ahead of time, and for tests.
    """

    def __init__(self, bundles: Optional[Mapping[PubkeyLike, CrankResult]] = None) -> None:
        self._bundles: Dict[Pubkey, CrankResult] = {
            to_pubkey(feed): result for feed, result in (bundles or {}).items()
        }

    def add(self, feed: PubkeyLike, result: CrankResult) -> None:
        self._bundles[to_pubkey(feed)] = result

    def crank(
        self,
        feed: Pubkey,
        num_responses: int,
        payer: Optional[Pubkey] = None,
        feed_id: Optional[bytes] = None,
    ) -> CrankResult:
        result = self._bundles.get(to_pubkey(feed))
        if result is None:
            raise OracleUnavailable(feed, "no bundle registered")
        return result
