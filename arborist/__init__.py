"""Signer resolution and transaction submission for Bubblegum tree management."""

from .capacity import account_size, canopy_size, merkle_tree_get_size
from .derivation import DerivationPath, PathSegment
from .errors import (
    ArboristError,
    CapacityError,
    DerivationPathError,
    LocatorError,
    ParseError,
    RecoveryError,
    ResolutionError,
    SubmissionError,
    format_error_chain,
)
from .recovery import SignerOptions, UserDeclined
from .signer import SignerSource, keypair_from_path, keypair_from_source, parse_signer_source
from .tx_builder import SubmissionStage, TransactionBuilder

__all__ = [
    "account_size",
    "canopy_size",
    "merkle_tree_get_size",
    "DerivationPath",
    "PathSegment",
    "ArboristError",
    "CapacityError",
    "DerivationPathError",
    "LocatorError",
    "ParseError",
    "RecoveryError",
    "ResolutionError",
    "SubmissionError",
    "format_error_chain",
    "SignerOptions",
    "UserDeclined",
    "SignerSource",
    "keypair_from_path",
    "keypair_from_source",
    "parse_signer_source",
    "SubmissionStage",
    "TransactionBuilder",
]
