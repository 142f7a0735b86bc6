"""JSON-RPC client for Solana-compatible nodes.

The client is intentionally thin: each helper maps directly to one node RPC
method and returns the parsed ``result`` (unwrapping ``context``/``value``
envelopes where the node uses them). Transport problems and node-side errors
are surfaced as distinct exception types so callers can attach their own
context before reporting.
"""

from __future__ import annotations

import base64
import itertools
import logging
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException, Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 90
DEFAULT_COMMITMENT = "confirmed"


class RPCError(RuntimeError):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    @property
    def logs(self) -> list[str]:
        """Program logs from a failed preflight simulation, when present."""

        if isinstance(self.data, dict) and isinstance(self.data.get("logs"), list):
            return [str(line) for line in self.data["logs"]]
        return []


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a one-line remediation hint for common node rejections."""

    if error_obj is None:
        return None

    code = None
    message = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))

    lowered = message.lower()
    if "blockhash not found" in lowered:
        return "The blockhash expired before the node saw the transaction; retry the command."
    if "attempt to debit an account but found no record of a prior credit" in lowered:
        return "The fee payer has no SOL on this cluster. Fund it (e.g. `solana airdrop` on devnet) and retry."
    if "insufficient" in lowered and ("funds" in lowered or "lamports" in lowered):
        return "The fee payer cannot cover rent and fees for this transaction; fund it and retry."
    if code == -32002:
        return "Preflight simulation failed; inspect the program logs above or rerun with --skip-preflight."
    if code == 429 or "too many requests" in lowered:
        return "The RPC endpoint is rate limiting requests; use a private endpoint via --url."
    return None


class SolanaRPCClient:
    """Typed JSON-RPC client for Solana-compatible nodes."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        commitment: str = DEFAULT_COMMITMENT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.commitment = commitment
        self._session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.url,
                json=payload,
                headers={"content-type": "application/json"},
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.url} failed. Ensure the node is reachable or pass a "
                "different endpoint with --url."
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned an unexpected response shape")
        if result.get("error"):
            error = result["error"]
            if not isinstance(error, dict):
                logger.error("RPC error member is not an object: %r", error)
                raise RPCTransportError("RPC server returned a malformed error object")
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        # Nodes often return a JSON-RPC error body alongside HTTP errors.
        try:
            err_body = response.json()
        except ValueError:
            err_body = response.text
        logger.error("RPC HTTP error %s from %s", response.status_code, self.url)
        logger.error("RPC error body: %s", err_body)
        if isinstance(err_body, dict) and isinstance(err_body.get("error"), dict):
            error = err_body["error"]
            raise RPCError(
                error.get("code", response.status_code),
                error.get("message", "unknown"),
                error.get("data"),
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check the endpoint URL.",
            status_code=response.status_code,
        )

    def _commitment_config(self, commitment: str | None) -> Dict[str, Any]:
        return {"commitment": commitment or self.commitment}

    @staticmethod
    def _value(result: Any) -> Any:
        if isinstance(result, dict) and "value" in result:
            return result["value"]
        return result

    # Convenience wrappers -------------------------------------------------

    def get_latest_blockhash(self, commitment: str | None = None) -> Dict[str, Any]:
        """Return ``{"blockhash": str, "lastValidBlockHeight": int}``."""

        value = self._value(self.call("getLatestBlockhash", [self._commitment_config(commitment)]))
        if not isinstance(value, dict) or "blockhash" not in value:
            raise RPCTransportError("getLatestBlockhash returned no blockhash")
        return value

    @staticmethod
    def _int_result(method: str, result: Any) -> int:
        if isinstance(result, bool):
            raise RPCTransportError(f"{method} returned a non-integer result: {result!r}")
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise RPCTransportError(f"{method} returned a non-integer result: {result!r}") from exc

    def get_block_height(self, commitment: str | None = None) -> int:
        return self._int_result(
            "getBlockHeight", self.call("getBlockHeight", [self._commitment_config(commitment)])
        )

    def get_minimum_balance_for_rent_exemption(
        self, data_len: int, commitment: str | None = None
    ) -> int:
        return self._int_result(
            "getMinimumBalanceForRentExemption",
            self.call(
                "getMinimumBalanceForRentExemption",
                [data_len, self._commitment_config(commitment)],
            ),
        )

    def send_transaction(
        self,
        raw_tx: bytes,
        *,
        skip_preflight: bool = False,
        preflight_commitment: str | None = None,
    ) -> str:
        """Submit a serialized transaction, returning its base58 signature."""

        config = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": preflight_commitment or self.commitment,
        }
        encoded = base64.b64encode(raw_tx).decode("ascii")
        return str(self.call("sendTransaction", [encoded, config]))

    def get_signature_statuses(
        self, signatures: List[str], search_transaction_history: bool = False
    ) -> List[Optional[Dict[str, Any]]]:
        value = self._value(
            self.call(
                "getSignatureStatuses",
                [signatures, {"searchTransactionHistory": search_transaction_history}],
            )
        )
        if value is None:
            return []
        if not isinstance(value, list) or not all(
            entry is None or isinstance(entry, dict) for entry in value
        ):
            raise RPCTransportError("getSignatureStatuses returned an unexpected response shape")
        return value

    def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        statuses = self.get_signature_statuses([signature])
        return statuses[0] if statuses else None
