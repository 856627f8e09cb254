import struct

import pytest
from unittest.mock import AsyncMock, MagicMock

from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from spl.token.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from spl.token.instructions import get_associated_token_address

from swapdesk.gateways.trading import SOL_MINT
from swapdesk.ledger.transfer import build_transfer_instructions, parse_address

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def test_parse_address():
    key = parse_address(f"  {USDC_MINT} ")
    assert str(key) == USDC_MINT


@pytest.mark.parametrize("text", ["not-an-address", "abc", "0" * 44, "I" * 40, ""])
def test_parse_address_rejects(text):
    with pytest.raises(ValueError):
        parse_address(text)


@pytest.mark.asyncio
async def test_native_transfer_is_a_single_system_instruction():
    ledger = MagicMock()
    ledger.get_mint_program = AsyncMock()
    owner, destination = Pubkey.new_unique(), Pubkey.new_unique()

    ixs = await build_transfer_instructions(ledger, owner, destination,
                                            SOL_MINT, 500_000_000, 9)
    assert len(ixs) == 1
    assert ixs[0].program_id == SYSTEM_PROGRAM_ID
    # system transfer: u32 index 2, u64 lamports
    assert struct.unpack("<IQ", bytes(ixs[0].data)) == (2, 500_000_000)
    ledger.get_mint_program.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("program_id", [TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID])
async def test_token_transfer_uses_owning_program(program_id):
    ledger = MagicMock()
    ledger.get_mint_program = AsyncMock(return_value=program_id)
    owner, destination = Pubkey.new_unique(), Pubkey.new_unique()
    mint = Pubkey.from_string(USDC_MINT)

    create, send = await build_transfer_instructions(ledger, owner, destination,
                                                     USDC_MINT, 7_123_456, 6)

    assert create.program_id == ASSOCIATED_TOKEN_PROGRAM_ID
    assert send.program_id == program_id

    source = get_associated_token_address(owner, mint, program_id)
    dest = get_associated_token_address(destination, mint, program_id)
    accounts = [meta.pubkey for meta in send.accounts]
    assert accounts[:4] == [source, mint, dest, owner]

    # transfer_checked: u8 tag 12, u64 amount, u8 decimals
    assert struct.unpack("<BQB", bytes(send.data)) == (12, 7_123_456, 6)
    ledger.get_mint_program.assert_awaited_once_with(USDC_MINT)
