"""Signer source parsing and keypair resolution.

A signer is named on the command line by a single token. The token is
classified into a :class:`SignerSource` and then resolved into a keypair:

* ``prompt:[//?key=<account>/<change> | ?full-path=m/...]`` - seed phrase prompt
* ``ASK`` - seed phrase prompt using the legacy (pre-BIP44) derivation
* ``file:<path>`` or a bare existing path - JSON keypair file
* ``stdin:`` or ``-`` - JSON keypair read from standard input
* ``usb://<manufacturer>[/<pubkey>][?key=...]`` - hardware wallet (public key only)
* a base58 public key - public key only
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import IO, Union
from urllib.parse import urlsplit

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .derivation import DerivationPath, path_from_any_query, path_from_key_query
from .errors import ParseError, ResolutionError
from .keys import parse_pubkey, read_keypair, read_keypair_file
from .locator import HardwareLocator, locator_from_uri
from .recovery import SignerOptions, UserDeclined, keypair_from_seed_phrase

logger = logging.getLogger(__name__)

SIGNER_SOURCE_PROMPT = "prompt"
SIGNER_SOURCE_FILEPATH = "file"
SIGNER_SOURCE_USB = "usb"
SIGNER_SOURCE_STDIN = "stdin"
SIGNER_SOURCE_PUBKEY = "pubkey"

STDOUT_OUTFILE_TOKEN = "-"
ASK_KEYWORD = "ASK"


@dataclass(frozen=True)
class PromptSource:
    name = SIGNER_SOURCE_PROMPT


@dataclass(frozen=True)
class FileSource:
    path: str
    name = SIGNER_SOURCE_FILEPATH


@dataclass(frozen=True)
class UsbSource:
    locator: HardwareLocator
    name = SIGNER_SOURCE_USB


@dataclass(frozen=True)
class StdinSource:
    name = SIGNER_SOURCE_STDIN


@dataclass(frozen=True)
class PubkeySource:
    pubkey: Pubkey
    name = SIGNER_SOURCE_PUBKEY


SignerSourceKind = Union[PromptSource, FileSource, UsbSource, StdinSource, PubkeySource]


@dataclass(frozen=True)
class SignerSource:
    kind: SignerSourceKind
    derivation_path: DerivationPath | None = None
    legacy: bool = False


def normalize_source_token(source: str, *, windows: bool | None = None) -> str:
    """Undo cmd.exe quoting and backslashes on Windows; identity elsewhere."""

    if windows is None:
        windows = os.name == "nt"
    if not windows:
        return source
    while source.startswith("'") and len(source) > 1 and source.endswith("'"):
        source = source[1:-1]
    return source.replace("\\", "/")


def parse_signer_source(source: str, *, windows: bool | None = None) -> SignerSource:
    """Classify a signer token without reading any key material."""

    if windows is None:
        windows = os.name == "nt"
    source = normalize_source_token(source, windows=windows)
    try:
        uri = urlsplit(source)
    except ValueError as exc:
        raise ParseError(f"unrecognized signer source {source!r}") from exc

    if uri.scheme:
        scheme = uri.scheme.lower()
        if scheme == SIGNER_SOURCE_PROMPT:
            return SignerSource(PromptSource(), derivation_path=path_from_any_query(uri.query))
        if scheme == SIGNER_SOURCE_FILEPATH:
            return SignerSource(FileSource(uri.path))
        if scheme == SIGNER_SOURCE_USB:
            return SignerSource(
                UsbSource(locator_from_uri(uri)),
                derivation_path=path_from_key_query(uri.query),
            )
        if scheme == SIGNER_SOURCE_STDIN:
            return SignerSource(StdinSource())
        # An absolute Windows path parses its drive letter as a scheme.
        if windows and len(scheme) == 1:
            return SignerSource(FileSource(source))
        raise ParseError(f"unrecognized signer source {source!r}")

    if source == STDOUT_OUTFILE_TOKEN:
        return SignerSource(StdinSource())
    if source == ASK_KEYWORD:
        return SignerSource(PromptSource(), legacy=True)
    try:
        return SignerSource(PubkeySource(parse_pubkey(source)))
    except ValueError:
        pass
    if not os.path.exists(source):
        raise ParseError(f"unrecognized signer source {source!r}: no such file or directory")
    return SignerSource(FileSource(source))


def keypair_from_source(
    signer_source: SignerSource,
    keypair_name: str,
    options: SignerOptions,
    *,
    stdin: IO[str] | None = None,
) -> Keypair | UserDeclined:
    """Resolve an already parsed source into a keypair, trying it exactly once."""

    kind = signer_source.kind
    if isinstance(kind, PromptSource):
        return keypair_from_seed_phrase(
            keypair_name,
            signer_source.derivation_path,
            signer_source.legacy,
            options,
        )
    if isinstance(kind, FileSource):
        try:
            return read_keypair_file(kind.path)
        except (OSError, ValueError) as exc:
            raise ResolutionError(
                f'could not read keypair file "{kind.path}". Run "solana-keygen new" to create '
                f"a keypair file: {exc}"
            ) from exc
    if isinstance(kind, StdinSource):
        try:
            return read_keypair(stdin if stdin is not None else sys.stdin)
        except (OSError, ValueError) as exc:
            raise ResolutionError(f"could not read keypair from stdin: {exc}") from exc
    if isinstance(kind, (UsbSource, PubkeySource)):
        raise ResolutionError(f"signer of type `{kind.name}` does not support Keypair output")
    raise TypeError(f"unknown signer source kind: {kind!r}")


def keypair_from_path(
    options: SignerOptions,
    path: str,
    keypair_name: str,
    *,
    stdin: IO[str] | None = None,
) -> Keypair | UserDeclined:
    """Parse ``path`` as a signer token and resolve it into a keypair."""

    signer_source = parse_signer_source(path)
    logger.debug("Resolving %s signer from %s source", keypair_name, signer_source.kind.name)
    return keypair_from_source(signer_source, keypair_name, options, stdin=stdin)
