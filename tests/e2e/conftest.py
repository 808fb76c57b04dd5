import pytest

from boring_vault.config import ClientConfig
from boring_vault.rpc import SolanaRpcClient


@pytest.fixture(scope="session")
def rpc_url(pytestconfig):
    return pytestconfig.getoption("--rpc")


@pytest.fixture(scope="session")
def solana(rpc_url):
    if not rpc_url:
        pytest.skip("SOLANA_RPC_URL not set")
    client = SolanaRpcClient.from_config(ClientConfig(rpc_url=rpc_url))
    yield client
    client.close()
