"""Build, sign, send, and confirm transactions against a node.

:class:`TransactionBuilder` runs one strictly sequential pipeline per call::

    fetch blockhash -> build & sign -> send -> confirm

Each stage failure is raised as a :class:`SubmissionError` labelled with the
stage; nothing is retried or resubmitted here.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, Sequence

from solders.errors import SignerError
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .errors import SubmissionError
from .rpc_client import RPCError, RPCTransportError, SolanaRPCClient, format_rpc_hint

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}
DEFAULT_POLL_INTERVAL_SECONDS = 0.5


class SubmissionStage(str, Enum):
    FETCH_BLOCKHASH = "getting latest blockhash"
    BUILD_AND_SIGN = "signing transaction"
    SEND = "sending transaction"
    CONFIRM = "confirming transaction"


def status_meets_commitment(status: Dict[str, Any], commitment: str) -> bool:
    """Whether a ``getSignatureStatuses`` entry satisfies ``commitment``."""

    required = COMMITMENT_RANK.get(commitment, COMMITMENT_RANK["finalized"])
    reached = status.get("confirmationStatus")
    if reached is None:
        # Older nodes only report a confirmation count; ``None`` means rooted.
        reached = "finalized" if status.get("confirmations") is None else "confirmed"
    return COMMITMENT_RANK.get(reached, -1) >= required


def _rpc_reason(exc: Exception) -> str:
    """The node's rejection reason, followed by a remediation hint when one applies."""

    reason = str(exc) or type(exc).__name__
    if not isinstance(exc, RPCError):
        return reason
    for line in exc.logs:
        logger.error("Program log: %s", line)
    hint = format_rpc_hint(exc)
    return f"{reason}. Hint: {hint}" if hint else reason


class TransactionBuilder:
    """Submit instruction batches as single-shot, confirmed transactions."""

    def __init__(
        self,
        rpc: SolanaRPCClient,
        *,
        commitment: str | None = None,
        skip_preflight: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_wait_seconds: float | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.rpc = rpc
        self.commitment = commitment or getattr(rpc, "commitment", "confirmed")
        self.skip_preflight = skip_preflight
        self.poll_interval = poll_interval
        self.max_wait_seconds = max_wait_seconds
        self.progress_callback = progress_callback

    def _progress(self, message: str) -> None:
        if self.progress_callback is not None:
            self.progress_callback(message)

    def fetch_blockhash(
        self,
        stage: SubmissionStage = SubmissionStage.FETCH_BLOCKHASH,
        *,
        signature: str | None = None,
    ) -> tuple[Hash, int]:
        """Return the node's latest blockhash and its last valid block height."""

        if signature is None:
            label = "Error getting latest blockhash"
        else:
            label = f"Error getting recent blockhash for transaction {signature}"
        try:
            latest = self.rpc.get_latest_blockhash(self.commitment)
            blockhash = Hash.from_string(str(latest["blockhash"]))
            last_valid = int(latest.get("lastValidBlockHeight", 0))
        except (RPCError, RPCTransportError, KeyError, TypeError, ValueError) as exc:
            raise SubmissionError(
                label, stage=stage.value, signature=signature, reason=_rpc_reason(exc)
            ) from exc
        logger.debug("Using blockhash %s (valid until height %s)", blockhash, last_valid)
        return blockhash, last_valid

    def build_and_sign(
        self,
        instructions: Sequence[Instruction],
        payer: Pubkey,
        signers: Sequence[Keypair],
        blockhash: Hash,
    ) -> VersionedTransaction:
        """Assemble a legacy message and sign it with exactly its required signers."""

        stage = SubmissionStage.BUILD_AND_SIGN.value
        message = Message.new_with_blockhash(list(instructions), payer, blockhash)

        required = list(message.account_keys[: message.header.num_required_signatures])
        unique_signers: dict[Pubkey, Keypair] = {}
        for signer in signers:
            unique_signers.setdefault(signer.pubkey(), signer)

        missing = [key for key in required if key not in unique_signers]
        if missing:
            raise SubmissionError(
                "Error signing transaction",
                stage=stage,
                reason=f"missing signature for {', '.join(str(key) for key in missing)}",
            )
        extra = [key for key in unique_signers if key not in required]
        if extra:
            raise SubmissionError(
                "Error signing transaction",
                stage=stage,
                reason=f"keypair {', '.join(str(key) for key in extra)} is not a required signer",
            )

        ordered = [unique_signers[key] for key in required]
        try:
            return VersionedTransaction(message, ordered)
        except (SignerError, ValueError) as exc:
            raise SubmissionError("Error signing transaction", stage=stage, reason=str(exc)) from exc

    def send(self, transaction: VersionedTransaction) -> Signature:
        try:
            raw_signature = self.rpc.send_transaction(
                bytes(transaction),
                skip_preflight=self.skip_preflight,
                preflight_commitment=self.commitment,
            )
        except (RPCError, RPCTransportError) as exc:
            raise SubmissionError(
                "Error sending transaction",
                stage=SubmissionStage.SEND.value,
                reason=_rpc_reason(exc),
            ) from exc
        signature = transaction.signatures[0]
        if raw_signature and raw_signature != str(signature):
            logger.warning("Node reported signature %s, expected %s", raw_signature, signature)
        logger.info("Sent transaction %s", signature)
        return signature

    def confirm(self, signature: Signature) -> None:
        """Poll until ``signature`` reaches the configured commitment or expires."""

        sig = str(signature)
        stage = SubmissionStage.CONFIRM.value
        label = f"Error confirming transaction {sig}"
        _, last_valid_block_height = self.fetch_blockhash(SubmissionStage.CONFIRM, signature=sig)

        waited = 0.0
        while True:
            try:
                status = self.rpc.get_signature_status(sig)
                if status is not None:
                    if status.get("err"):
                        raise SubmissionError(
                            label,
                            stage=stage,
                            signature=sig,
                            reason=f"transaction failed: {status['err']}",
                        )
                    if status_meets_commitment(status, self.commitment):
                        self._progress(f"Transaction {sig} reached {self.commitment} commitment")
                        return
                    self._progress(
                        f"Waiting for {sig}: {status.get('confirmationStatus') or 'pending'}"
                    )
                else:
                    self._progress(f"Waiting for {sig} to be processed")
                block_height = self.rpc.get_block_height(self.commitment)
            except (RPCError, RPCTransportError) as exc:
                raise SubmissionError(
                    label, stage=stage, signature=sig, reason=_rpc_reason(exc)
                ) from exc

            if last_valid_block_height and block_height > last_valid_block_height:
                raise SubmissionError(
                    label,
                    stage=stage,
                    signature=sig,
                    reason="blockhash expired before the transaction was confirmed",
                )
            if self.max_wait_seconds is not None and waited >= self.max_wait_seconds:
                raise SubmissionError(
                    label,
                    stage=stage,
                    signature=sig,
                    reason=f"not confirmed within {self.max_wait_seconds} seconds",
                )
            time.sleep(self.poll_interval)
            waited += self.poll_interval

    def submit(
        self,
        instructions: Sequence[Instruction],
        payer: Pubkey,
        signers: Sequence[Keypair],
    ) -> Signature:
        """Run the full pipeline once and return the transaction signature."""

        logger.info("Submitting transaction with %d instruction(s)", len(instructions))
        blockhash, _ = self.fetch_blockhash()
        transaction = self.build_and_sign(instructions, payer, signers, blockhash)
        signature = self.send(transaction)
        self.confirm(signature)
        return signature
