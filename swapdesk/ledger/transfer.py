# swapdesk/ledger/transfer.py

import logging
from typing import List

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import (
    create_idempotent_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)
from spl.token.models import TransferCheckedParams

from swapdesk.gateways.trading import SOL_MINT

log = logging.getLogger(__name__)


def parse_address(text: str) -> Pubkey:
    """Parse a base58 public key, raising ValueError when it isn't one."""
    text = text.strip()
    # 32 bytes in base58 is 32 to 44 characters
    if not 32 <= len(text) <= 44:
        raise ValueError(f"Invalid address: {text}")
    return Pubkey.from_string(text)


async def build_transfer_instructions(ledger, owner: Pubkey, destination: Pubkey,
                                      mint: str, amount: int, decimals: int
                                      ) -> List[Instruction]:
    if mint == SOL_MINT:
        return [transfer(TransferParams(from_pubkey=owner, to_pubkey=destination,
                                        lamports=amount))]

    mint_key = Pubkey.from_string(mint)
    program_id = await ledger.get_mint_program(mint)
    source = get_associated_token_address(owner, mint_key, program_id)
    dest = get_associated_token_address(destination, mint_key, program_id)
    log.debug(f"SPL transfer {amount} of {mint} via {program_id}: {source} -> {dest}")

    return [
        # no-op when the recipient already holds an account for this mint
        create_idempotent_associated_token_account(owner, destination, mint_key, program_id),
        transfer_checked(TransferCheckedParams(
            program_id=program_id,
            source=source,
            mint=mint_key,
            dest=dest,
            owner=owner,
            amount=amount,
            decimals=decimals,
            signers=[],
        )),
    ]
