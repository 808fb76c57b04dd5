import os

import pytest
from solders.keypair import Keypair

from boring_vault.accounts import UserWithdrawState
from boring_vault.composer import TransactionComposer
from boring_vault.derivation import AddressDeriver
from boring_vault.queue import WithdrawQueue
from boring_vault.vault import VaultReader

from factories import T0, FakeRpc, FixedClock, make_request


def pytest_addoption(parser):
    parser.addoption("--rpc", action="store", default=os.getenv("SOLANA_RPC_URL"))


@pytest.fixture
def rpc():
    return FakeRpc()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def deriver():
    return AddressDeriver()


@pytest.fixture
def user():
    return Keypair()


@pytest.fixture
def queue(rpc, deriver, clock):
    return WithdrawQueue(rpc, deriver, clock=clock, max_workers=4)


@pytest.fixture
def vault_reader(rpc, deriver):
    return VaultReader(rpc, deriver)


@pytest.fixture
def composer(rpc, deriver, vault_reader, queue):
    return TransactionComposer(deriver, vault_reader, queue, submit_client=rpc)


@pytest.fixture
def seeded_queue(rpc, deriver, user):
    """User with last_nonce=2: nonce 0 and 1 in vault 1, nonce 2 in vault 2."""
    owner = user.pubkey()
    rpc.put_record(deriver.user_withdraw_state(owner), UserWithdrawState(last_nonce=2))
    rpc.put_record(
        deriver.withdraw_request(owner, 0),
        make_request(owner, 0, vault_id=1, creation_time=T0 - 7200),
    )
    rpc.put_record(
        deriver.withdraw_request(owner, 1),
        make_request(owner, 1, vault_id=1, creation_time=T0 - 1800),
    )
    rpc.put_record(
        deriver.withdraw_request(owner, 2),
        make_request(owner, 2, vault_id=2, creation_time=T0 - 90_000),
    )
    return owner
