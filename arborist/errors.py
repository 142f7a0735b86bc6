"""Error taxonomy shared by the signer and transaction layers.

Every component re-raises lower-level failures with a short contextual message
(``raise SomeError("context") from exc``) so the CLI can print a single chain
without a traceback. :func:`format_error_chain` renders that chain.
"""

from __future__ import annotations

from typing import Sequence


class ArboristError(RuntimeError):
    """Base class for all reported failures."""


class ParseError(ArboristError):
    """Raised when a signer source token cannot be classified."""


class DerivationPathError(ParseError):
    """Raised for malformed derivation paths or derivation-path queries."""


class LocatorError(ParseError):
    """Raised for malformed hardware wallet locators."""


class RecoveryError(ArboristError):
    """Raised when a seed phrase cannot be turned into a keypair."""


class ResolutionError(ArboristError):
    """Raised when a parsed signer source cannot produce a keypair."""


class CapacityError(ArboristError):
    """Raised for depth/buffer combinations outside the supported tree shapes."""

    def __init__(
        self,
        message: str,
        *,
        suggested_depths: Sequence[int] = (),
        suggested_buffer_sizes: Sequence[int] = (),
    ) -> None:
        super().__init__(message)
        self.suggested_depths = tuple(suggested_depths)
        self.suggested_buffer_sizes = tuple(suggested_buffer_sizes)


class SubmissionError(ArboristError):
    """Raised when a transaction fails at a labelled submission stage."""

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        signature: str | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.signature = signature
        self.reason = reason

    def __str__(self) -> str:
        if self.reason:
            return f"{self.message}: {self.reason}"
        return self.message


def format_error_chain(exc: BaseException) -> str:
    """Render ``exc`` and its ``__cause__`` chain for terminal output."""

    head = str(exc) or type(exc).__name__
    causes: list[str] = []
    current = exc.__cause__
    while current is not None:
        causes.append(str(current) or type(current).__name__)
        current = current.__cause__

    if not causes:
        return head
    if len(causes) == 1:
        return f"{head}\n\nCaused by:\n    {causes[0]}"
    lines = [head, "", "Caused by:"]
    lines.extend(f"    {index}: {message}" for index, message in enumerate(causes))
    return "\n".join(lines)
