"""In-memory collaborators and record builders shared by the unit tests."""

import threading
from typing import Dict, List, Optional

import requests
from solders.hash import Hash
from solders.pubkey import Pubkey

from boring_vault.accounts import (
    AssetData,
    ManagerState,
    MintInfo,
    OracleSource,
    TellerState,
    VaultConfig,
    VaultState,
    WithdrawRequest,
    encode_account,
)
from boring_vault.derivation import to_pubkey
from boring_vault.rpc import AccountBlob


T0 = 1_700_000_000


class FakeRpc:
    """In-memory read and submit client."""

    def __init__(self):
        self.accounts: Dict[Pubkey, bytes] = {}
        self.lamports: Dict[Pubkey, int] = {}
        self.failing: Dict[Pubkey, Exception] = {}
        self.reads: List[Pubkey] = []
        self.sent: List[bytes] = []
        self.blockhash = Hash.new_unique()
        self.blockhash_calls = 0
        self._lock = threading.Lock()

    def put(self, address, data: bytes, lamports: int = 0) -> None:
        self.accounts[to_pubkey(address)] = bytes(data)
        self.lamports[to_pubkey(address)] = lamports

    def put_record(self, address, record, account_type: Optional[str] = None) -> None:
        self.put(address, encode_account(record, account_type))

    def fail(self, address, exc: Exception) -> None:
        self.failing[to_pubkey(address)] = exc

    def get_account(self, address) -> AccountBlob:
        key = to_pubkey(address)
        with self._lock:
            self.reads.append(key)
        if key in self.failing:
            raise self.failing[key]
        data = self.accounts.get(key)
        if data is None:
            return AccountBlob.absent(key)
        return AccountBlob(address=key, data=data, owner=None, exists=True, lamports=self.lamports.get(key, 0))

    def get_latest_blockhash(self) -> Hash:
        self.blockhash_calls += 1
        return self.blockhash

    def send_raw_transaction(self, raw: bytes) -> str:
        self.sent.append(bytes(raw))
        return f"sig-{len(self.sent)}"


class FixedClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now


def make_request(user: Pubkey, nonce: int, vault_id: int = 1, asset_out: Optional[Pubkey] = None,
                 creation_time: int = T0, seconds_to_maturity: int = 3600,
                 seconds_to_deadline: int = 86400, share_amount: int = 500_000_000,
                 asset_amount: int = 250_000_000) -> WithdrawRequest:
    return WithdrawRequest(
        vault_id=vault_id,
        asset_out=asset_out or Pubkey.default(),
        share_amount=share_amount,
        asset_amount=asset_amount,
        creation_time=creation_time,
        seconds_to_maturity=seconds_to_maturity,
        seconds_to_deadline=seconds_to_deadline,
        user=user,
        nonce=nonce,
    )


def make_vault_state(vault_id: int = 1, share_mint: Optional[Pubkey] = None,
                     deposit_sub_account: int = 0, withdraw_sub_account: int = 1,
                     paused: bool = False) -> VaultState:
    return VaultState(
        config=VaultConfig(
            vault_id=vault_id,
            authority=Pubkey.new_unique(),
            pending_authority=Pubkey.default(),
            share_mint=share_mint or Pubkey.new_unique(),
            deposit_sub_account=deposit_sub_account,
            withdraw_sub_account=withdraw_sub_account,
            paused=paused,
        ),
        teller=TellerState(
            base_asset=Pubkey.new_unique(),
            decimals=9,
            exchange_rate_provider=Pubkey.new_unique(),
            exchange_rate=1_050_000_000,
            exchange_rate_high_water_mark=1_060_000_000,
            fees_owed_in_base_asset=12_345,
            total_shares_last_update=10_000_000_000,
            last_update_timestamp=T0,
            payout_address=Pubkey.new_unique(),
            allowed_exchange_rate_change_upper_bound=10_050,
            allowed_exchange_rate_change_lower_bound=9_950,
            minimum_update_delay_in_seconds=3600,
            platform_fee_bps=100,
            performance_fee_bps=2_000,
            withdraw_authority=Pubkey.default(),
        ),
        manager=ManagerState(strategist=Pubkey.new_unique()),
    )


def make_asset_data(price_feed: Optional[Pubkey] = None,
                    oracle_source: OracleSource = OracleSource.SWITCHBOARD_V2,
                    feed_id: bytes = bytes(32)) -> AssetData:
    return AssetData(
        allow_deposits=True,
        allow_withdrawals=True,
        share_premium_bps=0,
        is_pegged_to_base_asset=False,
        price_feed=price_feed or Pubkey.new_unique(),
        inverse_price_feed=False,
        max_staleness=300,
        min_samples=3,
        oracle_source=oracle_source,
        feed_id=feed_id,
    )


def make_mint(decimals: int = 9, supply: int = 0) -> MintInfo:
    return MintInfo(
        mint_authority_option=1,
        mint_authority=Pubkey.new_unique(),
        supply=supply,
        decimals=decimals,
        is_initialized=True,
    )


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass

