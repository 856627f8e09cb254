import base64
import struct

import pytest
from unittest.mock import AsyncMock, MagicMock

from solders.compute_budget import ID as COMPUTE_BUDGET_ID
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from swapdesk.errors import SimulationError, SimulationErrorKind
from swapdesk.gateways.ledger import SimulationResult
from swapdesk.ledger.compute import (
    ComputeEstimator,
    clamp_compute_unit_price,
    classify_simulation_failure,
    compile_transaction,
    compute_unit_limit,
)


def budget_values(transaction):
    """(unit price, unit limit) from the two compute budget instructions."""
    message = transaction.message
    keys = message.account_keys
    price = limit = None
    for ix in message.instructions:
        if keys[ix.program_id_index] != COMPUTE_BUDGET_ID:
            continue
        data = bytes(ix.data)
        if data[0] == 3:
            price = struct.unpack("<Q", data[1:9])[0]
        elif data[0] == 2:
            limit = struct.unpack("<I", data[1:5])[0]
    return price, limit


def decode(wire):
    return VersionedTransaction.from_bytes(base64.b64decode(wire))


@pytest.fixture
def payer():
    return Pubkey.new_unique()


@pytest.fixture
def instructions(payer):
    return [transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(),
                                    lamports=1_000))]


def make_estimator(simulation, estimate=None):
    ledger = MagicMock()
    ledger.simulate = AsyncMock(return_value=simulation)
    oracle = MagicMock()
    oracle.estimate = AsyncMock(return_value=estimate)
    return ComputeEstimator(ledger, oracle)


# -------------------------------
# Pure helpers
# -------------------------------


def test_limit_adds_twenty_percent():
    assert compute_unit_limit(100_000) == 120_000


def test_limit_rounds_up():
    assert compute_unit_limit(1) == 2
    assert compute_unit_limit(101) == 122


def test_limit_is_capped():
    assert compute_unit_limit(1_300_000) == 1_400_000


def test_limit_without_consumption_uses_max():
    assert compute_unit_limit(None) == 1_400_000


def test_price_is_clamped():
    assert clamp_compute_unit_price(5) == 10_000
    assert clamp_compute_unit_price(1_000_000) == 70_000
    assert clamp_compute_unit_price(30_000) == 30_000


def test_missing_estimate_uses_floor():
    assert clamp_compute_unit_price(None) == 10_000
    assert clamp_compute_unit_price(0) == 10_000


@pytest.mark.parametrize("err,logs,kind", [
    ("InstructionErrorCustom: 6001", ["Program log: custom program error: 0x1771"],
     SimulationErrorKind.SLIPPAGE),
    ("InstructionErrorCustom: 6028", ["Program log: failed 0x178c"],
     SimulationErrorKind.SLIPPAGE),
    ("InstructionErrorCustom: 1",
     ["Program 11111111111111111111111111111111 failed: custom program error: 0x1"],
     SimulationErrorKind.INSUFFICIENT_FUNDS),
    ("InstructionErrorCustom: 1", ["Transfer: insufficient lamports 10, need 20"],
     SimulationErrorKind.INSUFFICIENT_FUNDS),
    ("InsufficientFundsForRent: 0", ["anything"], SimulationErrorKind.INSUFFICIENT_FUNDS),
    ("AccountNotFound", [], SimulationErrorKind.INSUFFICIENT_FUNDS),
    ("InstructionErrorCustom: 42", ["Program log: something else"],
     SimulationErrorKind.UNKNOWN),
])
def test_classify_simulation_failure(err, logs, kind):
    assert classify_simulation_failure(err, logs) == kind


def test_classification_follows_log_order():
    logs = ["Program log: 0x178c", "Transfer: insufficient lamports 1, need 2"]
    assert classify_simulation_failure("x", logs) == SimulationErrorKind.SLIPPAGE


def test_simulation_error_message():
    assert str(SimulationError(SimulationErrorKind.SLIPPAGE)) == "Slippage tolerance exceeded"
    assert (str(SimulationError(SimulationErrorKind.INSUFFICIENT_FUNDS))
            == "Insufficient funds for transaction")


def test_compile_transaction_has_placeholder_signature(payer, instructions):
    tx = compile_transaction(payer, instructions, Hash.default())
    assert len(tx.signatures) == 1
    assert tx.message.account_keys[0] == payer


# -------------------------------
# prepare_transaction
# -------------------------------


@pytest.mark.asyncio
async def test_prepare_sizes_budget(payer, instructions):
    estimator = make_estimator(SimulationResult(units_consumed=100_000), estimate=5)
    wire = await estimator.prepare_transaction(instructions, payer, Hash.default())

    tx = decode(wire)
    assert budget_values(tx) == (10_000, 120_000)
    # price, limit, then the caller's instructions untouched
    assert len(tx.message.instructions) == 3


@pytest.mark.asyncio
async def test_prepare_simulates_with_max_limit_and_min_price(payer, instructions):
    estimator = make_estimator(SimulationResult(units_consumed=50_000), estimate=None)
    await estimator.prepare_transaction(instructions, payer, Hash.default())

    simulated = estimator.ledger.simulate.await_args.args[0]
    assert budget_values(simulated) == (10_000, 1_400_000)
    estimator.fee_oracle.estimate.assert_awaited_once()


@pytest.mark.asyncio
async def test_prepare_clamps_high_fee_estimate(payer, instructions):
    estimator = make_estimator(SimulationResult(units_consumed=200_000), estimate=1_000_000)
    tx = decode(await estimator.prepare_transaction(instructions, payer, Hash.default()))
    assert budget_values(tx) == (70_000, 240_000)


@pytest.mark.asyncio
async def test_prepare_without_oracle_uses_floor(payer, instructions):
    ledger = MagicMock()
    ledger.simulate = AsyncMock(return_value=SimulationResult(units_consumed=1_000))
    estimator = ComputeEstimator(ledger)
    tx = decode(await estimator.prepare_transaction(instructions, payer, Hash.default()))
    assert budget_values(tx) == (10_000, 1_200)


@pytest.mark.asyncio
async def test_prepare_raises_on_simulation_failure(payer, instructions):
    estimator = make_estimator(SimulationResult(
        err="InstructionErrorCustom: 1",
        logs=["Transfer: insufficient lamports 10, need 1010"]))
    with pytest.raises(SimulationError) as exc:
        await estimator.prepare_transaction(instructions, payer, Hash.default())
    assert exc.value.kind == SimulationErrorKind.INSUFFICIENT_FUNDS
    assert exc.value.logs == ["Transfer: insufficient lamports 10, need 1010"]


@pytest.mark.asyncio
async def test_prepare_rejects_empty_instructions(payer):
    estimator = make_estimator(SimulationResult(units_consumed=1))
    with pytest.raises(ValueError):
        await estimator.prepare_transaction([], payer, Hash.default())
    estimator.ledger.simulate.assert_not_awaited()


def test_from_config():
    config = MagicMock()
    config.fees = {"min_compute_unit_price": 1, "max_compute_unit_price": 2,
                   "max_compute_units": 3}
    estimator = ComputeEstimator.from_config(config, ledger=None)
    assert (estimator.min_price, estimator.max_price, estimator.max_units) == (1, 2, 3)
