"""Bubblegum (compressed NFT) tree management instructions.

The on-chain programs own these wire formats; this module only lays out the
account lists and Anchor-encoded instruction data they expect.
"""

from __future__ import annotations

import hashlib
import logging
import struct
from dataclasses import dataclass

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import CreateAccountParams, create_account

from .capacity import account_size
from .errors import ArboristError
from .rpc_client import RPCError, RPCTransportError
from .tx_builder import TransactionBuilder

logger = logging.getLogger(__name__)

BUBBLEGUM_PROGRAM_ID = Pubkey.from_string("BGUMAp9Gq7iTEuizy4pqaxsTyUCBK68MDfK752saRPUY")
ACCOUNT_COMPRESSION_PROGRAM_ID = Pubkey.from_string("cmtDvXumGCrqC1Age74AVPhSRVXJMd8PJS91L8KbNCK")
NOOP_PROGRAM_ID = Pubkey.from_string("noopb9bkMVfRPU8AsbpTUg8AQkHtKwMYZiFUjNRtMmV")


class TreeOperationError(ArboristError):
    """Raised when a tree operation fails before a transaction is submitted."""


@dataclass(frozen=True)
class CreatedTree:
    signature: Signature
    merkle_tree: Pubkey
    tree_authority: Pubkey
    size: int
    rent_lamports: int


def anchor_discriminator(name: str) -> bytes:
    """First 8 bytes of ``sha256("global:<name>")``."""

    return hashlib.sha256(f"global:{name}".encode("ascii")).digest()[:8]


def find_tree_authority(merkle_tree: Pubkey) -> Pubkey:
    tree_authority, _bump = Pubkey.find_program_address([bytes(merkle_tree)], BUBBLEGUM_PROGRAM_ID)
    return tree_authority


def create_tree_data(max_depth: int, max_buffer_size: int, public: bool | None = None) -> bytes:
    args = struct.pack("<II", max_depth, max_buffer_size)
    if public is None:
        args += b"\x00"
    else:
        args += struct.pack("<BB", 1, int(public))
    return anchor_discriminator("create_tree") + args


def set_tree_delegate_data() -> bytes:
    return anchor_discriminator("set_tree_delegate")


def create_tree_instruction(
    tree_authority: Pubkey,
    merkle_tree: Pubkey,
    payer: Pubkey,
    tree_creator: Pubkey,
    max_depth: int,
    max_buffer_size: int,
) -> Instruction:
    accounts = [
        AccountMeta(tree_authority, is_signer=False, is_writable=True),
        AccountMeta(merkle_tree, is_signer=False, is_writable=True),
        AccountMeta(payer, is_signer=True, is_writable=False),
        AccountMeta(tree_creator, is_signer=True, is_writable=False),
        AccountMeta(NOOP_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(ACCOUNT_COMPRESSION_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(
        BUBBLEGUM_PROGRAM_ID,
        create_tree_data(max_depth, max_buffer_size),
        accounts,
    )


def set_tree_delegate_instruction(
    tree_authority: Pubkey,
    tree_creator: Pubkey,
    new_tree_delegate: Pubkey,
    merkle_tree: Pubkey,
) -> Instruction:
    accounts = [
        AccountMeta(tree_authority, is_signer=False, is_writable=True),
        AccountMeta(tree_creator, is_signer=True, is_writable=False),
        AccountMeta(new_tree_delegate, is_signer=False, is_writable=False),
        AccountMeta(merkle_tree, is_signer=False, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(BUBBLEGUM_PROGRAM_ID, set_tree_delegate_data(), accounts)


def create_tree(
    builder: TransactionBuilder,
    keypair: Keypair,
    depth: int,
    buffer_size: int,
    canopy_depth: int = 0,
    *,
    tree: Keypair | None = None,
) -> CreatedTree:
    """Allocate a concurrent Merkle tree account and initialize its tree config."""

    payer = keypair.pubkey()
    tree = tree or Keypair()
    merkle_tree = tree.pubkey()
    tree_authority = find_tree_authority(merkle_tree)

    size = account_size(depth, buffer_size, canopy_depth)
    try:
        rent = builder.rpc.get_minimum_balance_for_rent_exemption(size)
    except (RPCError, RPCTransportError) as exc:
        raise TreeOperationError("Error getting rent exemption balance for new tree") from exc
    logger.info(
        "Creating tree %s (depth=%s buffer=%s canopy=%s, %s bytes, %s lamports)",
        merkle_tree,
        depth,
        buffer_size,
        canopy_depth,
        size,
        rent,
    )

    instructions = [
        create_account(
            CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=merkle_tree,
                lamports=rent,
                space=size,
                owner=ACCOUNT_COMPRESSION_PROGRAM_ID,
            )
        ),
        create_tree_instruction(tree_authority, merkle_tree, payer, payer, depth, buffer_size),
    ]
    signature = builder.submit(instructions, payer, [keypair, tree])
    return CreatedTree(
        signature=signature,
        merkle_tree=merkle_tree,
        tree_authority=tree_authority,
        size=size,
        rent_lamports=rent,
    )


def delegate_tree(
    builder: TransactionBuilder,
    keypair: Keypair,
    merkle_tree: Pubkey,
    tree_authority: Pubkey,
    new_tree_delegate: Pubkey,
) -> Signature:
    """Hand delegate rights over ``merkle_tree`` to ``new_tree_delegate``.

    The loaded keypair is assumed to be the tree creator.
    """

    payer = keypair.pubkey()
    instruction = set_tree_delegate_instruction(
        tree_authority, payer, new_tree_delegate, merkle_tree
    )
    return builder.submit([instruction], payer, [keypair])
