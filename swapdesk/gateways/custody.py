# swapdesk/gateways/custody.py

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from swapdesk.errors import UpstreamError
from swapdesk.gateways.http import HttpGateway

log = logging.getLogger(__name__)


@dataclass
class Wallet:
    wallet_id: str
    address: str

    @property
    def short_address(self) -> str:
        return f"{self.address[:4]}...{self.address[-4:]}"


class PrivyCustody(HttpGateway):
    """Remote signer holding one Solana wallet per chat user.

    Users are keyed by their Telegram user id. Wallets are created with
    the configured signer attached so this service can request
    signatures on the user's behalf.
    """

    service = "custody"

    def __init__(self, app_id: str, app_secret: str, signer_id: str = "",
                 base_url: str = "https://api.privy.io",
                 auth_url: str = "https://auth.privy.io",
                 timeout: float = 30, session=None):
        super().__init__(base_url, timeout=timeout, session=session)
        self.app_id = app_id
        self.app_secret = app_secret
        self.signer_id = signer_id
        self.auth_url = auth_url.rstrip("/")
        # session_id -> Wallet
        self._wallets: Dict[str, Wallet] = {}

    def _headers(self):
        headers = super()._headers()
        headers["privy-app-id"] = self.app_id
        return headers

    def _auth(self):
        return aiohttp.BasicAuth(self.app_id, self.app_secret)

    @staticmethod
    def _wallet_from_user(user: dict) -> Optional[Wallet]:
        for account in user.get("linked_accounts") or []:
            if (account.get("type") == "wallet"
                    and account.get("wallet_client_type") == "privy"
                    and account.get("chain_type") == "solana"):
                return Wallet(wallet_id=account["id"], address=account["address"])
        return None

    async def _find_user(self, session_id: str) -> Optional[dict]:
        try:
            return await self._request(
                "POST", "/api/v1/users/telegram/telegram_user_id",
                payload={"telegram_user_id": session_id},
                base_url=self.auth_url)
        except UpstreamError as e:
            if e.status == 404:
                return None
            raise

    async def _import_user(self, session_id: str) -> dict:
        return await self._request(
            "POST", "/api/v1/users",
            payload={"linked_accounts": [
                {"type": "telegram", "telegram_user_id": session_id}]},
            base_url=self.auth_url)

    async def _create_wallet(self, user_id: str) -> Wallet:
        payload = {"chain_type": "solana", "owner": {"user_id": user_id}}
        if self.signer_id:
            payload["additional_signers"] = [{"signer_id": self.signer_id}]
        data = await self._request("POST", "/v1/wallets", payload=payload)
        return Wallet(wallet_id=data["id"], address=data["address"])

    async def get_wallet(self, session_id: str) -> Optional[Wallet]:
        if session_id in self._wallets:
            return self._wallets[session_id]
        user = await self._find_user(session_id)
        wallet = self._wallet_from_user(user) if user else None
        if wallet:
            self._wallets[session_id] = wallet
        return wallet

    async def get_or_create_wallet(self, session_id: str) -> Wallet:
        wallet = await self.get_wallet(session_id)
        if wallet:
            return wallet

        log.info(f"Creating custody wallet for session {session_id}")
        user = await self._find_user(session_id) or await self._import_user(session_id)
        wallet = await self._create_wallet(user["id"])
        self._wallets[session_id] = wallet
        log.info(f"Created wallet {wallet.address} for session {session_id}")
        return wallet

    async def sign_transaction(self, wallet_id: str, transaction: str) -> str:
        """Sign a base64 serialized transaction, returning it signed and
        base64 encoded."""
        data = await self._request("POST", f"/v1/wallets/{wallet_id}/rpc", payload={
            "method": "signTransaction",
            "params": {"transaction": transaction, "encoding": "base64"},
        })
        data = self._expect_object(data, "signing")
        signed = (data.get("data") or {}).get("signed_transaction")
        if not signed:
            raise UpstreamError("Signing returned no transaction", service=self.service)
        return signed
