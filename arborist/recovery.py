"""Recover a signing keypair from an interactively entered seed phrase.

The phrase is checked against the BIP39 wordlists in a fixed order and the
first language that validates wins. Seeds are stretched with the standard
BIP39 PBKDF2 construction; the resulting keypair is either taken straight from
the seed (legacy mode) or derived along a BIP44 path.
"""

from __future__ import annotations

import getpass
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Sequence

from mnemonic import Mnemonic
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .derivation import DerivationPath
from .errors import RecoveryError

logger = logging.getLogger(__name__)

SEARCH_LANGUAGES: tuple[str, ...] = (
    "english",
    "chinese_simplified",
    "chinese_traditional",
    "japanese",
    "spanish",
    "korean",
    "french",
    "italian",
)
ED25519_SEED_BYTES = 32


@dataclass(frozen=True)
class SignerOptions:
    """Flags that change how prompted signers are recovered."""

    skip_seed_phrase_validation: bool = False
    confirm_key: bool = False


@dataclass(frozen=True)
class UserDeclined:
    """Returned instead of a keypair when the operator rejects the recovered key.

    Callers are expected to stop the whole program on this value.
    """

    pubkey: Pubkey


def prompt_password(prompt: str) -> str:
    return getpass.getpass(prompt)


def prompt_line(prompt: str) -> str:
    return input(prompt)


def _read_hidden(prompt: str, what: str) -> str:
    try:
        return prompt_password(prompt)
    except (EOFError, OSError) as exc:
        raise RecoveryError(f"Failed to read {what} from the terminal") from exc


def _read_line(prompt: str, what: str) -> str:
    try:
        return prompt_line(prompt)
    except (EOFError, OSError) as exc:
        raise RecoveryError(f"Failed to read {what} from the terminal") from exc


def sanitize_seed_phrase(seed_phrase: str) -> str:
    """Collapse whitespace runs; word order and case are left untouched."""

    return " ".join(seed_phrase.split())


def prompt_passphrase(prompt: str) -> str:
    """Ask for a passphrase and, when one is given, for a matching re-entry."""

    passphrase = _read_hidden(prompt, "passphrase")
    if passphrase:
        confirmed = _read_hidden("Enter same passphrase again: ", "passphrase confirmation")
        if confirmed != passphrase:
            raise RecoveryError("Passphrases did not match")
    return passphrase


@lru_cache(maxsize=None)
def _wordlist(language: str) -> Mnemonic:
    return Mnemonic(language)


def detect_language(
    phrase: str,
    languages: Sequence[str] = SEARCH_LANGUAGES,
    *,
    wordlist: Callable[[str], Mnemonic] = _wordlist,
) -> str:
    """Return the first language in ``languages`` whose checksum accepts ``phrase``."""

    for language in languages:
        if wordlist(language).check(phrase):
            logger.debug("Seed phrase validated against the %s wordlist", language)
            return language
    raise RecoveryError("Can't get mnemonic from seed phrases: unable to determine mnemonic language")


def seed_from_phrase(phrase: str, passphrase: str) -> bytes:
    return Mnemonic.to_seed(phrase, passphrase)


def keypair_from_seed(seed: bytes) -> Keypair:
    """Legacy derivation: the first 32 seed bytes are the ed25519 secret."""

    if len(seed) < ED25519_SEED_BYTES:
        raise RecoveryError(f"Seed is too short: {len(seed)} bytes")
    return Keypair.from_seed(seed[:ED25519_SEED_BYTES])


def keypair_from_seed_and_derivation_path(
    seed: bytes, derivation_path: DerivationPath | None
) -> Keypair:
    # An explicit empty path (``m``) derives the master key itself.
    path = derivation_path if derivation_path is not None else DerivationPath.default()
    try:
        return Keypair.from_seed_and_derivation_path(seed, str(path))
    except ValueError as exc:
        raise RecoveryError(f"Failed to derive keypair along {path}") from exc


def derive_keypair(
    phrase: str,
    passphrase: str,
    derivation_path: DerivationPath | None,
    legacy: bool,
    *,
    validated: bool = True,
) -> Keypair:
    """Deterministically turn a normalized phrase and passphrase into a keypair."""

    if legacy and not validated:
        return Keypair.from_seed_phrase_and_passphrase(phrase, passphrase)
    seed = seed_from_phrase(phrase, passphrase)
    if legacy:
        return keypair_from_seed(seed)
    return keypair_from_seed_and_derivation_path(seed, derivation_path)


def confirm_recovered_pubkey(pubkey: Pubkey) -> bool:
    answer = _read_line(f"Recovered pubkey `{pubkey}`. Continue? (y/n): ", "confirmation")
    return answer.strip().lower() == "y"


def keypair_from_seed_phrase(
    keypair_name: str,
    derivation_path: DerivationPath | None,
    legacy: bool,
    options: SignerOptions,
) -> Keypair | UserDeclined:
    """Prompt for a seed phrase (and passphrase) and recover the keypair."""

    seed_phrase = sanitize_seed_phrase(
        _read_hidden(f"[{keypair_name}] seed phrase: ", "seed phrase")
    )
    if not seed_phrase:
        raise RecoveryError("Seed phrase is empty")
    passphrase_prompt = (
        f"[{keypair_name}] If this seed phrase has an associated passphrase, enter it now. "
        "Otherwise, press ENTER to continue: "
    )

    if options.skip_seed_phrase_validation:
        passphrase = prompt_passphrase(passphrase_prompt)
        keypair = derive_keypair(seed_phrase, passphrase, derivation_path, legacy, validated=False)
    else:
        detect_language(seed_phrase)
        passphrase = prompt_passphrase(passphrase_prompt)
        keypair = derive_keypair(seed_phrase, passphrase, derivation_path, legacy)

    pubkey = keypair.pubkey()
    logger.info("Recovered %s pubkey %s", keypair_name, pubkey)
    if options.confirm_key and not confirm_recovered_pubkey(pubkey):
        return UserDeclined(pubkey)
    return keypair
