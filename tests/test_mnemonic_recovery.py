from __future__ import annotations

from typing import Iterable

import pytest
from solders.keypair import Keypair

from arborist import recovery
from arborist.derivation import DerivationPath
from arborist.errors import RecoveryError
from arborist.recovery import (
    SignerOptions,
    UserDeclined,
    derive_keypair,
    detect_language,
    keypair_from_seed_phrase,
    sanitize_seed_phrase,
)

PHRASE = "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"


def _answers(monkeypatch: pytest.MonkeyPatch, hidden: Iterable[str], visible: Iterable[str] = ()) -> list[str]:
    hidden_iter = iter(hidden)
    visible_iter = iter(visible)
    prompts: list[str] = []

    def fake_password(prompt: str) -> str:
        prompts.append(prompt)
        return next(hidden_iter)

    def fake_line(prompt: str) -> str:
        prompts.append(prompt)
        return next(visible_iter)

    monkeypatch.setattr(recovery, "prompt_password", fake_password)
    monkeypatch.setattr(recovery, "prompt_line", fake_line)
    return prompts


def test_sanitize_collapses_whitespace_only() -> None:
    assert sanitize_seed_phrase("  Abandon\t abandon\n about ") == "Abandon abandon about"


def test_recovery_is_deterministic(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, [PHRASE, "", PHRASE, ""])

    first = keypair_from_seed_phrase("keypair", None, False, SignerOptions())
    second = keypair_from_seed_phrase("keypair", None, False, SignerOptions())

    assert isinstance(first, Keypair)
    assert first.pubkey() == second.pubkey()


def test_prompts_are_labelled_with_keypair_name(monkeypatch: pytest.MonkeyPatch) -> None:
    prompts = _answers(monkeypatch, [f"  {PHRASE}  ", ""])

    keypair_from_seed_phrase("fee-payer", None, False, SignerOptions())

    assert prompts[0] == "[fee-payer] seed phrase: "
    assert prompts[1].startswith("[fee-payer] If this seed phrase has an associated passphrase")


def test_passphrase_changes_the_key(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, [PHRASE, "", PHRASE, "hunter2", "hunter2"])

    plain = keypair_from_seed_phrase("keypair", None, False, SignerOptions())
    salted = keypair_from_seed_phrase("keypair", None, False, SignerOptions())

    assert plain.pubkey() != salted.pubkey()


def test_passphrase_mismatch_fails_before_derivation(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, [PHRASE, "hunter2", "hunter3"])

    def fail(*args, **kwargs):
        raise AssertionError("derivation must not run")

    monkeypatch.setattr(recovery, "derive_keypair", fail)

    with pytest.raises(RecoveryError, match="Passphrases did not match"):
        keypair_from_seed_phrase("keypair", None, False, SignerOptions())


def test_empty_seed_phrase_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, ["   "])

    with pytest.raises(RecoveryError):
        keypair_from_seed_phrase("keypair", None, False, SignerOptions())


def test_unknown_language_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, ["these words are not a valid mnemonic phrase at all no sir"])

    with pytest.raises(RecoveryError, match="unable to determine mnemonic language"):
        keypair_from_seed_phrase("keypair", None, False, SignerOptions())


def test_validation_is_not_consulted_when_skipped(monkeypatch: pytest.MonkeyPatch) -> None:
    phrase = "not a mnemonic at all"
    _answers(monkeypatch, [phrase, ""])

    def fail(*args, **kwargs):
        raise AssertionError("language detection must not run")

    monkeypatch.setattr(recovery, "detect_language", fail)

    keypair = keypair_from_seed_phrase(
        "keypair", None, True, SignerOptions(skip_seed_phrase_validation=True)
    )
    assert keypair.pubkey() == derive_keypair(phrase, "", None, True).pubkey()


def test_first_matching_language_wins() -> None:
    checked: list[str] = []

    class FakeWordlist:
        def __init__(self, language: str) -> None:
            self.language = language

        def check(self, phrase: str) -> bool:
            checked.append(self.language)
            return self.language in {"spanish", "french"}

    language = detect_language(PHRASE, wordlist=FakeWordlist)

    assert language == "spanish"
    assert checked == ["english", "chinese_simplified", "chinese_traditional", "japanese", "spanish"]


def test_english_phrase_is_detected_as_english() -> None:
    assert detect_language(PHRASE) == "english"


def test_legacy_and_derived_keys_differ() -> None:
    legacy = derive_keypair(PHRASE, "", None, True)
    default_path = derive_keypair(PHRASE, "", None, False)
    account_path = derive_keypair(PHRASE, "", DerivationPath.from_key_str("0/0"), False)

    assert len({legacy.pubkey(), default_path.pubkey(), account_path.pubkey()}) == 3


def test_default_path_is_used_when_none_given() -> None:
    implicit = derive_keypair(PHRASE, "", None, False)
    explicit = derive_keypair(PHRASE, "", DerivationPath.default(), False)
    assert implicit.pubkey() == explicit.pubkey()


def test_legacy_derivation_matches_solana_sdk_helper() -> None:
    validated = derive_keypair(PHRASE, "pass", None, True)
    unvalidated = derive_keypair(PHRASE, "pass", None, True, validated=False)
    assert validated.pubkey() == unvalidated.pubkey()


def test_confirmation_decline_returns_marker(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, [PHRASE, ""], ["n"])

    result = keypair_from_seed_phrase("keypair", None, False, SignerOptions(confirm_key=True))

    assert isinstance(result, UserDeclined)
    assert result.pubkey == derive_keypair(PHRASE, "", None, False).pubkey()


def test_confirmation_accept_returns_keypair(monkeypatch: pytest.MonkeyPatch) -> None:
    prompts = _answers(monkeypatch, [PHRASE, ""], ["Y"])

    result = keypair_from_seed_phrase("keypair", None, False, SignerOptions(confirm_key=True))

    assert isinstance(result, Keypair)
    assert prompts[-1].startswith(f"Recovered pubkey `{result.pubkey()}`")


def test_closed_terminal_at_seed_prompt_is_a_recovery_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def closed(prompt: str) -> str:
        raise EOFError

    monkeypatch.setattr(recovery, "prompt_password", closed)

    with pytest.raises(RecoveryError, match="Failed to read seed phrase from the terminal") as excinfo:
        keypair_from_seed_phrase("keypair", None, False, SignerOptions())
    assert isinstance(excinfo.value.__cause__, EOFError)


def test_closed_terminal_at_passphrase_confirmation(monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter([PHRASE, "hunter2"])

    def fake_password(prompt: str) -> str:
        try:
            return next(answers)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr(recovery, "prompt_password", fake_password)

    with pytest.raises(RecoveryError, match="passphrase confirmation"):
        keypair_from_seed_phrase("keypair", None, False, SignerOptions())


def test_closed_terminal_at_key_confirmation(monkeypatch: pytest.MonkeyPatch) -> None:
    _answers(monkeypatch, [PHRASE, ""])

    def broken_line(prompt: str) -> str:
        raise OSError("Input/output error")

    monkeypatch.setattr(recovery, "prompt_line", broken_line)

    with pytest.raises(RecoveryError, match="Failed to read confirmation"):
        keypair_from_seed_phrase("keypair", None, False, SignerOptions(confirm_key=True))


def test_explicit_root_path_derives_master_key() -> None:
    root = derive_keypair(PHRASE, "", DerivationPath(), False)
    default_path = derive_keypair(PHRASE, "", None, False)

    assert root.pubkey() != default_path.pubkey()
    assert root.pubkey() == derive_keypair(PHRASE, "", DerivationPath.from_absolute_path_str("m"), False).pubkey()
