# swapdesk/gateways/ledger.py

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.models import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from swapdesk.errors import UpstreamError

log = logging.getLogger(__name__)

RPC_ERRORS = (SolanaRpcException, RPCException)


@dataclass
class SimulationResult:
    err: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None


class LedgerClient:
    """The handful of RPC calls the transaction pipeline needs."""

    def __init__(self, rpc_url: str, confirm_timeout: float = 60,
                 poll_interval: float = 0.5, client: Optional[AsyncClient] = None):
        self.client = client or AsyncClient(rpc_url, commitment=Confirmed)
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval

    async def close(self):
        await self.client.close()

    async def simulate(self, transaction: VersionedTransaction) -> SimulationResult:
        try:
            resp = await self.client.simulate_transaction(
                transaction, sig_verify=False, commitment=Confirmed)
        except RPC_ERRORS as e:
            raise UpstreamError(f"Simulation request failed: {e}", service="ledger") from e
        value = resp.value
        err = None
        if value.err is not None:
            err = f"{type(value.err).__name__}: {value.err}"
        return SimulationResult(err=err,
                                logs=list(value.logs or []),
                                units_consumed=value.units_consumed)

    async def get_latest_blockhash(self) -> Hash:
        try:
            resp = await self.client.get_latest_blockhash(commitment=Confirmed)
        except RPC_ERRORS as e:
            raise UpstreamError(f"Could not fetch a recent blockhash: {e}",
                                service="ledger") from e
        return resp.value.blockhash

    async def get_mint_program(self, mint: str) -> Pubkey:
        """The token program that owns a mint (classic or token-2022)."""
        try:
            resp = await self.client.get_account_info(Pubkey.from_string(mint))
        except RPC_ERRORS as e:
            raise UpstreamError(f"Could not load mint {mint}: {e}", service="ledger") from e
        if resp.value is None:
            raise UpstreamError(f"Failed to get mint info for {mint}", service="ledger")
        return resp.value.owner

    async def send_raw_transaction(self, raw: bytes) -> str:
        opts = TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
        try:
            resp = await self.client.send_raw_transaction(raw, opts=opts)
        except RPC_ERRORS as e:
            raise UpstreamError(f"Transaction rejected: {e}", service="ledger") from e
        signature = str(resp.value)
        log.info(f"Sent transaction {signature}")
        return signature

    async def _poll_confirmation(self, signature: Signature):
        while True:
            try:
                resp = await self.client.get_signature_statuses([signature])
            except RPC_ERRORS as e:
                log.debug(f"Status check for {signature} failed: {e}")
                resp = None
            status = resp.value[0] if resp and resp.value else None
            if status:
                if status.err:
                    raise UpstreamError(f"Transaction failed: {status.err}",
                                        service="ledger")
                confirmation = str(status.confirmation_status or "").lower()
                if confirmation.endswith(("confirmed", "finalized")):
                    return
            await asyncio.sleep(self.poll_interval)

    async def confirm_transaction(self, signature: str):
        """Block until the signature reaches 'confirmed', bounded by
        confirm_timeout."""
        try:
            await asyncio.wait_for(
                self._poll_confirmation(Signature.from_string(signature)),
                timeout=self.confirm_timeout)
        except asyncio.TimeoutError:
            raise UpstreamError(
                f"Transaction {signature} was not confirmed within "
                f"{self.confirm_timeout}s", service="ledger")
        log.info(f"Transaction {signature} confirmed")
