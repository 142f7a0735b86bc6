import pytest

from arborist.errors import CapacityError, ResolutionError, SubmissionError, format_error_chain
from arborist.rpc_client import RPCError, format_rpc_hint


def _chain(*messages: str) -> Exception:
    errors = [ResolutionError(message) for message in messages]
    for outer, inner in zip(errors, errors[1:]):
        outer.__cause__ = inner
    return errors[0]


def test_single_error_has_no_cause_section() -> None:
    assert format_error_chain(ResolutionError("boom")) == "boom"


def test_single_cause_is_indented_without_index() -> None:
    try:
        try:
            raise FileNotFoundError("No such file or directory")
        except FileNotFoundError as exc:
            raise ResolutionError("Error parsing signer keypair") from exc
    except ResolutionError as outer:
        rendered = format_error_chain(outer)

    assert rendered == "Error parsing signer keypair\n\nCaused by:\n    No such file or directory"


def test_multiple_causes_are_numbered() -> None:
    error = _chain("Error parsing signer keypair", "could not read keypair file", "denied")

    assert format_error_chain(error).splitlines() == [
        "Error parsing signer keypair",
        "",
        "Caused by:",
        "    0: could not read keypair file",
        "    1: denied",
    ]


def test_empty_messages_fall_back_to_type_name() -> None:
    assert format_error_chain(KeyError()) == "KeyError"


def test_submission_error_includes_reason() -> None:
    error = SubmissionError("Error sending transaction", stage="sending transaction", reason="Hint: fund it")
    assert str(error) == "Error sending transaction: Hint: fund it"
    assert str(SubmissionError("Error sending transaction", stage="sending transaction")) == (
        "Error sending transaction"
    )


def test_capacity_error_keeps_suggestions_as_tuples() -> None:
    error = CapacityError("bad depth", suggested_depths=[20, 24])
    assert error.suggested_depths == (20, 24)
    assert error.suggested_buffer_sizes == ()


@pytest.mark.parametrize(
    "error, fragment",
    [
        (RPCError(-32002, "Transaction simulation failed: Blockhash not found"), "blockhash expired"),
        (RPCError(-32002, "Transaction simulation failed: insufficient lamports 5, need 10"), "rent and fees"),
        (RPCError(-32002, "Transaction simulation failed: custom program error: 0x1"), "--skip-preflight"),
        (RPCError(429, "Too Many Requests"), "rate limiting"),
        ({"code": -32002, "message": "Attempt to debit an account but found no record of a prior credit."}, "no SOL"),
    ],
)
def test_rpc_hints(error, fragment) -> None:
    hint = format_rpc_hint(error)
    assert hint is not None
    assert fragment in hint


def test_unknown_rpc_errors_have_no_hint() -> None:
    assert format_rpc_hint(RPCError(-32601, "Method not found")) is None
    assert format_rpc_hint(None) is None
