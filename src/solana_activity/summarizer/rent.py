"""Detection of rent reserved by System program CreateAccount instructions.

A CreateAccount instruction funds a new account with enough lamports to
be rent exempt. Those lamports show up as a native transfer from the
payer, but they are not a payment to anyone, so the summarizer subtracts
them from apparent SOL sends.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Sequence

import base58

from solana_activity.summarizer.models import Instruction

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM_ADDRESS = "11111111111111111111111111111111"

# System instruction discriminator (u32 little endian)
CREATE_ACCOUNT_DISCRIMINATOR = 0

# discriminator: u32, lamports: u64, space: u64, owner: [u8; 32]
_CREATE_ACCOUNT_LAYOUT = struct.Struct("<IQQ32s")
_DISCRIMINATOR_LAYOUT = struct.Struct("<I")

# Index of the new account in a CreateAccount instruction's account list
_NEW_ACCOUNT_INDEX = 1


def decode_create_account_lamports(data: bytes) -> int | None:
    """Return the lamports field of a CreateAccount payload, or None.

    Returns None when the payload is not a well-formed CreateAccount
    instruction.
    """
    if len(data) < _DISCRIMINATOR_LAYOUT.size:
        return None
    (discriminator,) = _DISCRIMINATOR_LAYOUT.unpack_from(data)
    if discriminator != CREATE_ACCOUNT_DISCRIMINATOR:
        return None
    if len(data) < _CREATE_ACCOUNT_LAYOUT.size:
        return None
    _, lamports, _space, _owner = _CREATE_ACCOUNT_LAYOUT.unpack_from(data)
    return int(lamports)


def detect_rent_costs(instructions: Sequence[Instruction]) -> dict[str, int]:
    """Map each account created in a transaction to the lamports reserved for it.

    Top-level and inner instructions are both scanned. Anything that is
    not a decodable System CreateAccount instruction is skipped. If the same account is created twice the last
    instruction wins.

    Args:
        instructions: Top-level instructions, each carrying its inner
            instructions.

    Returns:
        Dictionary of new account address to rent lamports.
    """
    rent_costs: dict[str, int] = {}

    for instruction in Instruction.flatten(instructions):
        if instruction.program_id != SYSTEM_PROGRAM_ADDRESS:
            continue

        try:
            data = base58.b58decode(instruction.data)
        except ValueError as e:
            logger.debug("Skipping undecodable system instruction data: %s", e)
            continue

        lamports = decode_create_account_lamports(data)
        if lamports is None:
            continue
        if len(instruction.accounts) <= _NEW_ACCOUNT_INDEX:
            logger.debug("Skipping CreateAccount without a new account: %s", instruction.accounts)
            continue

        rent_costs[instruction.accounts[_NEW_ACCOUNT_INDEX]] = lamports

    return rent_costs
