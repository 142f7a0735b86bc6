from __future__ import annotations

import base64
from typing import Any

import pytest
import requests

from arborist.rpc_client import RPCError, RPCTransportError, SolanaRPCClient


class FakeResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code
        self.text = str(body)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses: Any, **kwargs: Any) -> tuple[SolanaRPCClient, FakeSession]:
    session = FakeSession(*responses)
    client = SolanaRPCClient("http://node.test", session=session, **kwargs)  # type: ignore[arg-type]
    return client, session


def test_call_posts_jsonrpc_payload_with_increasing_ids() -> None:
    client, session = _client(
        FakeResponse({"jsonrpc": "2.0", "id": 1, "result": 10}),
        FakeResponse({"jsonrpc": "2.0", "id": 2, "result": 11}),
    )

    assert client.get_block_height() == 10
    assert client.get_block_height("finalized") == 11

    first, second = session.requests
    assert first["json"] == {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "getBlockHeight",
        "params": [{"commitment": "confirmed"}],
    }
    assert second["json"]["id"] == 2
    assert second["json"]["params"] == [{"commitment": "finalized"}]
    assert first["timeout"] == 90


def test_timeout_is_configurable() -> None:
    client, session = _client(FakeResponse({"result": 1}), timeout=5)
    client.get_block_height()
    assert session.requests[0]["timeout"] == 5


def test_latest_blockhash_unwraps_context() -> None:
    value = {"blockhash": "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N", "lastValidBlockHeight": 321}
    client, _ = _client(FakeResponse({"result": {"context": {"slot": 1}, "value": value}}))

    assert client.get_latest_blockhash() == value


def test_latest_blockhash_without_value_is_transport_error() -> None:
    client, _ = _client(FakeResponse({"result": {"context": {"slot": 1}, "value": None}}))

    with pytest.raises(RPCTransportError):
        client.get_latest_blockhash()


def test_send_transaction_encodes_base64() -> None:
    client, session = _client(FakeResponse({"result": "5sig"}))

    assert client.send_transaction(b"\x01\x02", skip_preflight=True) == "5sig"

    encoded, config = session.requests[0]["json"]["params"]
    assert base64.b64decode(encoded) == b"\x01\x02"
    assert config == {"encoding": "base64", "skipPreflight": True, "preflightCommitment": "confirmed"}


def test_signature_status_unwraps_first_entry() -> None:
    client, session = _client(
        FakeResponse({"result": {"context": {"slot": 2}, "value": [{"confirmationStatus": "processed"}]}}),
        FakeResponse({"result": {"context": {"slot": 3}, "value": [None]}}),
    )

    assert client.get_signature_status("sig") == {"confirmationStatus": "processed"}
    assert client.get_signature_status("sig") is None
    assert session.requests[0]["json"]["params"] == [["sig"], {"searchTransactionHistory": False}]


def test_rent_exemption_passes_size() -> None:
    client, session = _client(FakeResponse({"result": 2039280}))

    assert client.get_minimum_balance_for_rent_exemption(31800) == 2039280
    assert session.requests[0]["json"]["params"][0] == 31800


def test_jsonrpc_error_object_raises_rpc_error() -> None:
    client, _ = _client(
        FakeResponse({"error": {"code": -32002, "message": "simulation failed", "data": {"logs": ["log 1"]}}})
    )

    with pytest.raises(RPCError) as excinfo:
        client.call("sendTransaction", ["AA=="])

    assert excinfo.value.code == -32002
    assert excinfo.value.logs == ["log 1"]


def test_http_error_with_jsonrpc_body_is_rpc_error() -> None:
    client, _ = _client(FakeResponse({"error": {"code": 429, "message": "Too Many Requests"}}, status_code=429))

    with pytest.raises(RPCError) as excinfo:
        client.get_block_height()
    assert excinfo.value.code == 429


def test_http_error_without_body_is_transport_error() -> None:
    client, _ = _client(FakeResponse(ValueError("no json"), status_code=502))

    with pytest.raises(RPCTransportError) as excinfo:
        client.get_block_height()
    assert excinfo.value.status_code == 502


def test_connection_failure_is_transport_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"))

    with pytest.raises(RPCTransportError, match="http://node.test"):
        client.get_block_height()


def test_malformed_json_is_transport_error() -> None:
    client, _ = _client(FakeResponse(ValueError("bad json")))

    with pytest.raises(RPCTransportError, match="malformed JSON"):
        client.get_block_height()


def test_non_object_error_member_is_transport_error() -> None:
    client, _ = _client(FakeResponse({"jsonrpc": "2.0", "id": 1, "error": "rate limited"}))

    with pytest.raises(RPCTransportError, match="malformed error object"):
        client.get_block_height()


@pytest.mark.parametrize("result", [None, "soon", True])
def test_non_integer_results_are_transport_errors(result: Any) -> None:
    client, _ = _client(FakeResponse({"result": result}), FakeResponse({"result": result}))

    with pytest.raises(RPCTransportError, match="getBlockHeight returned a non-integer result"):
        client.get_block_height()
    with pytest.raises(RPCTransportError, match="getMinimumBalanceForRentExemption"):
        client.get_minimum_balance_for_rent_exemption(31800)


def test_malformed_signature_statuses_are_transport_errors() -> None:
    client, _ = _client(
        FakeResponse({"result": {"context": {"slot": 1}, "value": {"sig": "confirmed"}}}),
        FakeResponse({"result": {"context": {"slot": 1}, "value": ["confirmed"]}}),
    )

    with pytest.raises(RPCTransportError, match="unexpected response shape"):
        client.get_signature_status("sig")
    with pytest.raises(RPCTransportError, match="unexpected response shape"):
        client.get_signature_status("sig")
