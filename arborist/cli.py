"""Command-line interface for managing Bubblegum Merkle trees.

Startup is strictly ordered: configuration is loaded, the signer is resolved
(possibly prompting for a seed phrase), and only then does any network work
begin. Failures are printed as a single ``ERROR:`` context chain.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .bubblegum import create_tree, delegate_tree
from .config import CLIConfig, ConfigurationError, load_cli_config
from .errors import ArboristError, format_error_chain
from .keys import parse_pubkey
from .recovery import SignerOptions, UserDeclined
from .rpc_client import DEFAULT_TIMEOUT_SECONDS, RPCError, RPCTransportError, SolanaRPCClient
from .signer import keypair_from_path
from .tx_builder import TransactionBuilder

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


class CLIError(ArboristError):
    """Raised when a command fails after arguments were parsed."""


def _pubkey_arg(raw: str) -> Pubkey:
    try:
        return parse_pubkey(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _u8(raw: str) -> int:
    value = int(raw)
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"{raw} is not between 0 and 255")
    return value


def _u16(raw: str) -> int:
    value = int(raw)
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"{raw} is not between 0 and 65535")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="arborist",
        description="CLI for common operations on Metaplex Bubblegum compressed NFT trees",
    )
    parser.add_argument(
        "-C",
        "--solana-config",
        default=None,
        help="Path to an existing Solana CLI configuration file",
    )
    parser.add_argument(
        "-u",
        "--url",
        dest="rpc_url",
        metavar="URL_OR_MONIKER",
        default=None,
        help="Override the default RPC endpoint",
    )
    parser.add_argument(
        "--rpc-timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Timeout for RPC requests in seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--commitment",
        dest="rpc_commitment",
        default=None,
        help="Override the default RPC commitment level",
    )
    parser.add_argument("-k", "--keypair", default=None, help="Override the default keypair path")
    parser.add_argument(
        "--skip-seed-phrase-validation",
        action="store_true",
        help="Skip validation of seed phrases. Use this if your phrase does not use the BIP39 official English word list",
    )
    parser.add_argument(
        "--confirm-key",
        action="store_true",
        help="Confirm the recovered public key before continuing",
    )
    parser.add_argument(
        "--skip-preflight",
        action="store_true",
        help="Skip the node's preflight transaction simulation",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser(
        "create-tree", help="Create a new Merkle tree and tree configuration"
    )
    create_parser.add_argument(
        "-d", "--depth", type=_u8, required=True, help="Depth (log2 capacity) of the tree"
    )
    create_parser.add_argument(
        "-b",
        "--buffer",
        dest="buffer_size",
        type=_u16,
        required=True,
        help="Buffer size (i.e. concurrency limit) for the tree",
    )
    create_parser.add_argument(
        "-c",
        "--canopy",
        dest="canopy_depth",
        type=_u8,
        default=0,
        help="Cached tree (canopy) depth (default: %(default)s)",
    )

    delegate_parser = subparsers.add_parser(
        "delegate-tree", help="Delegate a Merkle tree to a new tree authority"
    )
    delegate_parser.add_argument(
        "-t", "--tree", dest="merkle_tree", type=_pubkey_arg, required=True, help="Address of the Merkle tree"
    )
    delegate_parser.add_argument(
        "-c",
        "--config",
        dest="tree_authority",
        type=_pubkey_arg,
        required=True,
        help="Address of the tree configuration PDA",
    )
    delegate_parser.add_argument(
        "-d",
        "--delegate",
        dest="new_tree_delegate",
        type=_pubkey_arg,
        required=True,
        help="The new delegate over the Merkle tree",
    )
    return parser


def _load_config(args: argparse.Namespace) -> CLIConfig:
    try:
        return load_cli_config(
            config_path=args.solana_config,
            overrides={
                "json_rpc_url": args.rpc_url,
                "keypair_path": args.keypair,
                "commitment": args.rpc_commitment,
            },
        )
    except ConfigurationError as exc:
        raise CLIError("Error loading Solana CLI configuration") from exc


def _resolve_signer(args: argparse.Namespace, config: CLIConfig) -> Keypair | UserDeclined:
    options = SignerOptions(
        skip_seed_phrase_validation=args.skip_seed_phrase_validation,
        confirm_key=args.confirm_key,
    )
    try:
        return keypair_from_path(options, config.keypair_path, "signer")
    except ArboristError as exc:
        raise CLIError("Error parsing signer keypair") from exc


def _stdout_progress(message: str) -> None:
    print(message)


def cmd_create_tree(args: argparse.Namespace, builder: TransactionBuilder, keypair: Keypair) -> None:
    created = create_tree(builder, keypair, args.depth, args.buffer_size, args.canopy_depth)
    print(f"Merkle tree: {created.merkle_tree}")
    print(f"Tree config: {created.tree_authority}")
    print(f"Success! Transaction signature: {created.signature}")


def cmd_delegate_tree(args: argparse.Namespace, builder: TransactionBuilder, keypair: Keypair) -> None:
    signature = delegate_tree(
        builder,
        keypair,
        args.merkle_tree,
        args.tree_authority,
        args.new_tree_delegate,
    )
    print(f"Success! Transaction signature: {signature}")


def run(args: argparse.Namespace) -> int:
    config = _load_config(args)
    keypair = _resolve_signer(args, config)
    if isinstance(keypair, UserDeclined):
        print("Exiting")
        return 1
    print(f"Signer: {keypair.pubkey()}")

    rpc = SolanaRPCClient(
        config.json_rpc_url,
        timeout=args.rpc_timeout,
        commitment=config.commitment,
    )
    builder = TransactionBuilder(
        rpc,
        skip_preflight=args.skip_preflight,
        progress_callback=_stdout_progress,
    )

    if args.command == "create-tree":
        cmd_create_tree(args, builder, keypair)
    elif args.command == "delegate-tree":
        cmd_delegate_tree(args, builder, keypair)
    else:  # pragma: no cover - argparse enforces choices
        raise CLIError(f"Unknown command: {args.command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        code = run(args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
        code = 1
    except (ArboristError, RPCError, RPCTransportError) as exc:
        print(f"ERROR: {format_error_chain(exc)}")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main(sys.argv[1:])
