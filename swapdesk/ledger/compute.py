# swapdesk/ledger/compute.py

import asyncio
import base64
import logging
from typing import Optional, Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from swapdesk.errors import SimulationError, SimulationErrorKind

log = logging.getLogger(__name__)

MAX_COMPUTE_UNITS = 1_400_000
MIN_COMPUTE_UNIT_PRICE = 10_000
MAX_COMPUTE_UNIT_PRICE = 70_000

# first match wins; checked against every simulation log line in order
SIMULATION_ERROR_PATTERNS = (
    ("0x1771", SimulationErrorKind.SLIPPAGE),
    ("0x178c", SimulationErrorKind.SLIPPAGE),
    ("Program 11111111111111111111111111111111 failed: custom program error: 0x1",
     SimulationErrorKind.INSUFFICIENT_FUNDS),
    ("insufficient lamports", SimulationErrorKind.INSUFFICIENT_FUNDS),
)


def classify_simulation_failure(err: Optional[str], logs: Sequence[str]) -> SimulationErrorKind:
    if err and "InsufficientFundsForRent" in err:
        return SimulationErrorKind.INSUFFICIENT_FUNDS
    if not logs:
        return SimulationErrorKind.INSUFFICIENT_FUNDS
    for line in logs:
        for pattern, kind in SIMULATION_ERROR_PATTERNS:
            if pattern in line:
                return kind
    return SimulationErrorKind.UNKNOWN


def compute_unit_limit(units_consumed: Optional[int],
                       max_units: int = MAX_COMPUTE_UNITS) -> int:
    """Consumed units plus a 20% margin, rounded up, capped at max_units."""
    units = units_consumed or max_units
    limit = (units * 12 + 9) // 10
    if limit == 0:
        raise ValueError("Failed to estimate compute units")
    return min(limit, max_units)


def clamp_compute_unit_price(estimate: Optional[int],
                             floor: int = MIN_COMPUTE_UNIT_PRICE,
                             ceiling: int = MAX_COMPUTE_UNIT_PRICE) -> int:
    if not estimate:
        return floor
    return min(max(int(estimate), floor), ceiling)


def compile_transaction(payer: Pubkey, instructions: Sequence[Instruction],
                        blockhash: Hash,
                        lookup_tables: Sequence[AddressLookupTableAccount] = ()
                        ) -> VersionedTransaction:
    """Compile to a v0 transaction with placeholder signatures, ready to be
    simulated without verification or handed to a remote signer."""
    message = MessageV0.try_compile(payer, list(instructions), list(lookup_tables), blockhash)
    signatures = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(message, signatures)


class ComputeEstimator:
    def __init__(self, ledger, fee_oracle=None,
                 min_price: int = MIN_COMPUTE_UNIT_PRICE,
                 max_price: int = MAX_COMPUTE_UNIT_PRICE,
                 max_units: int = MAX_COMPUTE_UNITS):
        self.ledger = ledger
        self.fee_oracle = fee_oracle
        self.min_price = min_price
        self.max_price = max_price
        self.max_units = max_units

    @classmethod
    def from_config(cls, config, ledger, fee_oracle=None):
        fees = config.fees
        return cls(ledger, fee_oracle,
                   min_price=fees["min_compute_unit_price"],
                   max_price=fees["max_compute_unit_price"],
                   max_units=fees["max_compute_units"])

    async def _estimate_price(self, transaction: VersionedTransaction) -> Optional[int]:
        if self.fee_oracle is None:
            return None
        wire = base64.b64encode(bytes(transaction)).decode("ascii")
        return await self.fee_oracle.estimate(wire)

    async def prepare_transaction(self, instructions: Sequence[Instruction], payer: Pubkey,
                                  blockhash: Hash,
                                  lookup_tables: Sequence[AddressLookupTableAccount] = ()
                                  ) -> str:
        """Size the compute budget for instructions and return the unsigned
        transaction, base64 encoded.

        A simulation failure raises SimulationError; a missing or failed fee
        estimate falls back to the minimum price.
        """
        if not instructions:
            raise ValueError("No instructions to prepare")

        test_tx = compile_transaction(
            payer,
            [set_compute_unit_price(self.min_price),
             set_compute_unit_limit(self.max_units),
             *instructions],
            blockhash, lookup_tables)

        simulation, price_estimate = await asyncio.gather(
            self.ledger.simulate(test_tx),
            self._estimate_price(test_tx))

        if simulation.err:
            kind = classify_simulation_failure(simulation.err, simulation.logs)
            log.warning(f"Simulation failed ({kind.value}): {simulation.err}; "
                        f"last logs: {simulation.logs[-10:]}")
            raise SimulationError(kind, simulation.logs)

        units = compute_unit_limit(simulation.units_consumed, self.max_units)
        price = clamp_compute_unit_price(price_estimate, self.min_price, self.max_price)
        log.info(f"Compute budget: {units} units at {price} micro-lamports/unit")

        transaction = compile_transaction(
            payer,
            [set_compute_unit_price(price), set_compute_unit_limit(units), *instructions],
            blockhash, lookup_tables)
        return base64.b64encode(bytes(transaction)).decode("ascii")
