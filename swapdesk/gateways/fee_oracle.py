# swapdesk/gateways/fee_oracle.py

import logging
from typing import Optional

from swapdesk.errors import UpstreamError
from swapdesk.gateways.http import HttpGateway

log = logging.getLogger(__name__)


class PriorityFeeOracle(HttpGateway):
    """getPriorityFeeEstimate over JSON-RPC. Returns None whenever no
    usable estimate comes back; callers fall back to their floor."""

    service = "fee oracle"

    async def estimate(self, transaction: str) -> Optional[int]:
        if not self.base_url:
            return None
        try:
            data = await self._request("POST", "", payload={
                "jsonrpc": "2.0",
                "id": "1",
                "method": "getPriorityFeeEstimate",
                "params": [{
                    "transaction": transaction,
                    "options": {
                        "recommended": True,
                        "transactionEncoding": "base64",
                    },
                }],
            })
        except UpstreamError as e:
            log.warning(f"Priority fee estimate unavailable: {e}")
            return None
        estimate = ((data or {}).get("result") or {}).get("priorityFeeEstimate")
        if not estimate:
            return None
        return int(estimate)
