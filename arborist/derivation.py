"""BIP44-style derivation paths used by seed phrase and hardware signers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple
from urllib.parse import parse_qsl

from .errors import DerivationPathError

PURPOSE = 44
SOLANA_COIN_TYPE = 501
U32_MAX = 2**32 - 1

QUERY_KEY = "key"
QUERY_FULL_PATH = "full-path"


@dataclass(frozen=True)
class PathSegment:
    index: int
    hardened: bool = True

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


@dataclass(frozen=True)
class DerivationPath:
    """Ordered derivation segments below the master key ``m``."""

    segments: Tuple[PathSegment, ...] = ()

    def __str__(self) -> str:
        return "/".join(["m", *(str(segment) for segment in self.segments)])

    def __iter__(self) -> Iterator[PathSegment]:
        return iter(self.segments)

    def __len__(self) -> int:
        return len(self.segments)

    @classmethod
    def bip44(cls, account: int | None = None, change: int | None = None) -> "DerivationPath":
        """Build ``m/44'/501'[/account'[/change']]``.

        ``change`` is only meaningful together with ``account``.
        """

        indexes = [PURPOSE, SOLANA_COIN_TYPE]
        if account is not None:
            indexes.append(account)
            if change is not None:
                indexes.append(change)
        return cls(tuple(PathSegment(index) for index in indexes))

    @classmethod
    def default(cls) -> "DerivationPath":
        return cls.bip44()

    @classmethod
    def from_key_str(cls, key: str) -> "DerivationPath":
        """Parse the ``<account>[/<change>]`` shorthand used by ``?key=``."""

        raw = key[:-1] if key.endswith("/") else key
        parts = raw.split("/")
        if len(parts) > 2:
            raise DerivationPathError(
                f"key path `{key}` too deep, only <account>/<change> supported"
            )
        account = _parse_index(parts[0], key)
        change = _parse_index(parts[1], key) if len(parts) == 2 else None
        return cls.bip44(account, change)

    @classmethod
    def from_absolute_path_str(cls, path: str) -> "DerivationPath":
        """Parse ``m/...``; every component is forced to a hardened index."""

        parts = path.split("/")
        if not parts or parts[0] != "m":
            raise DerivationPathError(
                f"failed to parse path {path!r}: derivation paths must start with `m`"
            )
        components = parts[1:]
        if components and components[-1] == "":
            components = components[:-1]
        return cls(tuple(PathSegment(_parse_index(part, path)) for part in components))


def _parse_index(raw: str, source: str) -> int:
    value = raw[:-1] if raw.endswith("'") else raw
    if not value:
        raise DerivationPathError(f"invalid derivation path `{source}`: empty component")
    if not value.isdigit():
        raise DerivationPathError(
            f"invalid derivation path `{source}`: `{raw}` is not a number"
        )
    index = int(value)
    if index > U32_MAX:
        raise DerivationPathError(
            f"invalid derivation path `{source}`: `{raw}` exceeds the 32-bit index range"
        )
    return index


def _from_query(query: str, *, key_only: bool) -> DerivationPath | None:
    if not query:
        return None
    pairs = parse_qsl(query, keep_blank_values=True)
    if len(pairs) > 1:
        raise DerivationPathError("invalid query string, extra fields not supported")
    fields = dict(pairs)
    if QUERY_KEY in fields:
        return DerivationPath.from_key_str(fields[QUERY_KEY])
    if key_only:
        raise DerivationPathError(
            f"invalid query string `{query}`, only `{QUERY_KEY}` supported"
        )
    if QUERY_FULL_PATH in fields:
        return DerivationPath.from_absolute_path_str(fields[QUERY_FULL_PATH])
    raise DerivationPathError(
        f"invalid query string `{query}`, only `{QUERY_KEY}` and `{QUERY_FULL_PATH}` supported"
    )


def path_from_any_query(query: str) -> DerivationPath | None:
    """Derivation path from a ``?key=`` or ``?full-path=`` query."""

    return _from_query(query, key_only=False)


def path_from_key_query(query: str) -> DerivationPath | None:
    """Derivation path from a ``?key=`` query; other keys are rejected."""

    return _from_query(query, key_only=True)
