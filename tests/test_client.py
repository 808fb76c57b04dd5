from solders.pubkey import Pubkey

from boring_vault.accounts import OracleSource
from boring_vault.client import VaultClient
from boring_vault.config import ClientConfig, DeadlineBasis
from boring_vault.instructions import CancelWithdrawAction
from boring_vault.oracles.gateway import GatewayCranker
from boring_vault.oracles.pyth import PythCranker
from boring_vault.oracles.static import StaticCranker
from boring_vault.queue import RequestStatus

from factories import T0, FixedClock


def test_client_wires_collaborators(rpc, seeded_queue):
    client = VaultClient(ClientConfig(max_workers=2), rpc=rpc, clock=FixedClock())
    assert client.queue.max_workers == 2
    assert client.composer.submit_client is rpc
    assert [info.nonce for info in client.list_requests(seeded_queue, max_count=2)] == [1, 2]
    assert [status.nonce for status in client.active_statuses(seeded_queue)] == [0, 1]
    assert client.withdraw_status(seeded_queue, 1).exists


def test_client_deadline_basis(rpc, seeded_queue):
    config = ClientConfig(deadline_basis=DeadlineBasis.MATURITY)
    client = VaultClient(config, rpc=rpc, clock=FixedClock(T0))
    statuses = [info.status for info in client.list_requests(seeded_queue)]
    assert statuses[2] is RequestStatus.EXPIRED
    assert client.queue.deadline_basis is DeadlineBasis.MATURITY
    first = client.list_requests(seeded_queue, vault_id=1)[0]
    assert first.time_to_deadline == 82_800


def test_client_submit(rpc, user):
    with VaultClient(ClientConfig(compute_unit_price=1000), rpc=rpc) as client:
        composed = client.compose(CancelWithdrawAction(owner=user.pubkey(), vault_id=1, request_id=0))
        assert len(composed.instructions) == 2
        assert client.submit(composed, [user]) == "sig-1"
    assert client.default_policy().timeout_s == 10.0


def test_client_from_env(monkeypatch, rpc):
    program = Pubkey.new_unique()
    monkeypatch.setenv("BORING_QUEUE_PROGRAM_ID", str(program))
    client = VaultClient.from_env(rpc=rpc)
    assert client.deriver.queue_program_id == program


def test_client_default_crankers_follow_oracle_source(rpc):
    client = VaultClient(ClientConfig(pyth_hermes_url="http://hermes.test"), rpc=rpc)
    crankers = client.composer.crankers
    assert set(crankers) == {OracleSource.PYTH, OracleSource.PYTH_V2}
    assert isinstance(crankers[OracleSource.PYTH], PythCranker)
    assert crankers[OracleSource.PYTH].hermes_url == "http://hermes.test"

    config = ClientConfig(oracle_gateway_url="http://gw.test")
    crankers = VaultClient(config, rpc=rpc).composer.crankers
    assert isinstance(crankers[OracleSource.SWITCHBOARD_V2], GatewayCranker)


def test_client_explicit_cranker_skips_defaults(rpc):
    cranker = StaticCranker()
    client = VaultClient(ClientConfig(), rpc=rpc, cranker=cranker)
    assert client.composer.cranker is cranker
    assert client.composer.crankers == {}
