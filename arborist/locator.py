"""Hardware wallet locators of the form ``usb://<manufacturer>[/<pubkey>]``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import SplitResult

from solders.pubkey import Pubkey

from .errors import LocatorError
from .keys import parse_pubkey

LOCATOR_SCHEME = "usb"


class Manufacturer(str, Enum):
    LEDGER = "ledger"


@dataclass(frozen=True)
class HardwareLocator:
    manufacturer: Manufacturer
    pubkey: Pubkey | None = None

    def __str__(self) -> str:
        suffix = f"/{self.pubkey}" if self.pubkey is not None else ""
        return f"{LOCATOR_SCHEME}://{self.manufacturer.value}{suffix}"


def parse_manufacturer(raw: str) -> Manufacturer:
    try:
        return Manufacturer(raw.lower())
    except ValueError as exc:
        raise LocatorError(f"failed to parse manufacturer {raw!r}: unknown manufacturer") from exc


def locator_from_uri(uri: SplitResult) -> HardwareLocator:
    """Build a locator from a split ``usb://`` URI; the query is ignored here."""

    if uri.scheme.lower() != LOCATOR_SCHEME:
        raise LocatorError(f"unimplemented locator scheme {uri.scheme!r}")
    if not uri.netloc:
        raise LocatorError("failed to parse manufacturer: locator has no manufacturer")
    manufacturer = parse_manufacturer(uri.netloc)

    raw_pubkey = uri.path.strip("/")
    pubkey = None
    if raw_pubkey:
        try:
            pubkey = parse_pubkey(raw_pubkey)
        except ValueError as exc:
            raise LocatorError(f"failed to parse pubkey {raw_pubkey!r}: {exc}") from exc
    return HardwareLocator(manufacturer=manufacturer, pubkey=pubkey)
