"""Public key parsing and keypair (de)serialization.

Keypair files use the Solana CLI format: a JSON array holding the 64 secret
key bytes (32-byte seed followed by the 32-byte public key).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import IO, Any

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)

PUBKEY_BYTES = 32
MAX_BASE58_PUBKEY_LEN = 44
KEYPAIR_BYTES = 64


class KeypairFormatError(ValueError):
    """Raised when serialized keypair bytes are malformed."""


def parse_pubkey(text: str) -> Pubkey:
    """Parse a base58 public key, raising ``ValueError`` when malformed."""

    if not text or len(text) > MAX_BASE58_PUBKEY_LEN:
        raise ValueError(f"invalid public key length: {text!r}")
    try:
        raw = base58.b58decode(text)
    except ValueError as exc:
        raise ValueError(f"invalid base58 public key: {text!r}") from exc
    if len(raw) != PUBKEY_BYTES:
        raise ValueError(f"public key must decode to {PUBKEY_BYTES} bytes, got {len(raw)}")
    return Pubkey.from_bytes(raw)


def keypair_from_json(text: str) -> Keypair:
    try:
        values: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise KeypairFormatError(f"keypair is not valid JSON: {exc.msg}") from exc
    if not isinstance(values, list) or len(values) != KEYPAIR_BYTES:
        raise KeypairFormatError(f"keypair must be a JSON array of {KEYPAIR_BYTES} bytes")
    if not all(isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 0xFF for value in values):
        raise KeypairFormatError("keypair array may only contain integers between 0 and 255")
    keypair = Keypair.from_bytes(bytes(values))
    logger.debug("Loaded keypair for %s", keypair.pubkey())
    return keypair


def keypair_to_json(keypair: Keypair) -> str:
    return json.dumps(list(bytes(keypair)))


def read_keypair(stream: IO[str]) -> Keypair:
    """Read a JSON keypair from an open text stream such as stdin."""

    return keypair_from_json(stream.read())


def read_keypair_file(path: str | Path) -> Keypair:
    with open(path, encoding="utf-8") as handle:
        return read_keypair(handle)
