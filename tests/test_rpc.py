import base64

import pytest
import requests
from solders.hash import Hash
from solders.pubkey import Pubkey

from boring_vault.errors import BlockhashExpiredError, RpcError, SimulationFailedError
from boring_vault.rpc import AccountBlob, SolanaRpcClient

from factories import FakeResponse, FakeSession


def rpc_result(value):
    return FakeResponse({"jsonrpc": "2.0", "id": 1, "result": value})


def make_client(*responses):
    session = FakeSession(*responses)
    return SolanaRpcClient("http://rpc.test", timeout=3, session=session), session


def test_get_account_decodes_base64():
    owner = Pubkey.new_unique()
    address = Pubkey.new_unique()
    client, session = make_client(rpc_result({
        "context": {"slot": 1},
        "value": {
            "data": [base64.b64encode(b"\x01\x02\x03").decode(), "base64"],
            "owner": str(owner),
            "lamports": 5,
            "executable": False,
        },
    }))
    blob = client.get_account(address)
    assert blob == AccountBlob(address=address, data=b"\x01\x02\x03", owner=owner, exists=True, lamports=5)
    sent = session.requests[0]
    assert sent["json"]["method"] == "getAccountInfo"
    assert sent["json"]["params"][0] == str(address)
    assert sent["json"]["params"][1]["encoding"] == "base64"
    assert sent["timeout"] == 3


def test_get_account_absent():
    address = Pubkey.new_unique()
    client, _ = make_client(rpc_result({"context": {"slot": 1}, "value": None}))
    blob = client.get_account(address)
    assert not blob.exists
    assert blob.data == b""
    assert blob.address == address


def test_json_rpc_error_raises_rpc_error():
    client, _ = make_client(FakeResponse({"error": {"code": -32602, "message": "Invalid param"}}))
    with pytest.raises(RpcError) as exc_info:
        client.get_account(Pubkey.new_unique())
    assert exc_info.value.code == -32602
    assert exc_info.value.method == "getAccountInfo"


def test_transport_failure_raises_rpc_error():
    client, _ = make_client(requests.ConnectionError("refused"))
    with pytest.raises(RpcError):
        client.get_account(Pubkey.new_unique())


def test_http_status_raises_rpc_error():
    client, _ = make_client(FakeResponse({}, status_code=503))
    with pytest.raises(RpcError):
        client.get_latest_blockhash()


def test_latest_blockhash():
    blockhash = Hash.new_unique()
    client, _ = make_client(rpc_result({"value": {"blockhash": str(blockhash), "lastValidBlockHeight": 10}}))
    assert client.get_latest_blockhash() == blockhash


def test_send_raw_transaction_returns_signature():
    client, session = make_client(rpc_result("5sig"))
    assert client.send_raw_transaction(b"\x00\x01") == "5sig"
    params = session.requests[0]["json"]["params"]
    assert params[0] == base64.b64encode(b"\x00\x01").decode()
    assert params[1]["maxRetries"] == 0


def test_send_raw_transaction_classifies_errors():
    client, _ = make_client(FakeResponse({"error": {"code": -32002, "message": "Blockhash not found"}}))
    with pytest.raises(BlockhashExpiredError):
        client.send_raw_transaction(b"\x00")

    logs = ["Program log: AnchorError occurred"]
    client, _ = make_client(FakeResponse({
        "error": {
            "code": -32002,
            "message": "Transaction simulation failed: Error processing Instruction 1: custom program error: 0x1771",
            "data": {"logs": logs},
        },
    }))
    with pytest.raises(SimulationFailedError) as exc_info:
        client.send_raw_transaction(b"\x00")
    assert exc_info.value.logs == logs
