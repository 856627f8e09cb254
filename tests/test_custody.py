import pytest
from unittest.mock import AsyncMock

from swapdesk.errors import UpstreamError
from swapdesk.gateways.custody import PrivyCustody

ADDRESS = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"

USER_WITH_WALLET = {
    "id": "did:privy:abc",
    "linked_accounts": [
        {"type": "telegram", "telegram_user_id": "42"},
        {"type": "wallet", "wallet_client_type": "privy", "chain_type": "ethereum",
         "id": "eth-wallet", "address": "0xabc"},
        {"type": "wallet", "wallet_client_type": "privy", "chain_type": "solana",
         "id": "sol-wallet", "address": ADDRESS},
    ],
}


class FakePrivy:
    """Routes _request calls by path so tests can script the API."""

    def __init__(self, user=None):
        self.user = user
        self.calls = []

    async def handle(self, method, path, params=None, payload=None, base_url=None):
        self.calls.append(path)
        if path == "/api/v1/users/telegram/telegram_user_id":
            if self.user is None:
                raise UpstreamError("User not found", service="custody", status=404)
            return self.user
        if path == "/api/v1/users":
            self.user = {"id": "did:privy:new", "linked_accounts": payload["linked_accounts"]}
            return self.user
        if path == "/v1/wallets":
            return {"id": "new-wallet", "address": ADDRESS, "chain_type": "solana"}
        if path.endswith("/rpc"):
            return {"method": "signTransaction",
                    "data": {"signed_transaction": "c2lnbmVk", "encoding": "base64"}}
        raise AssertionError(f"unexpected call {method} {path}")


def custody_with(fake):
    custody = PrivyCustody("app-id", "app-secret", signer_id="signer-1")
    custody._request = AsyncMock(side_effect=fake.handle)
    return custody


@pytest.mark.asyncio
async def test_existing_wallet_is_found():
    custody = custody_with(FakePrivy(USER_WITH_WALLET))
    wallet = await custody.get_or_create_wallet("42")
    assert wallet.wallet_id == "sol-wallet"
    assert wallet.address == ADDRESS
    assert wallet.short_address == "9WzD...AWWM"


@pytest.mark.asyncio
async def test_wallet_is_cached():
    fake = FakePrivy(USER_WITH_WALLET)
    custody = custody_with(fake)
    await custody.get_or_create_wallet("42")
    await custody.get_or_create_wallet("42")
    assert fake.calls == ["/api/v1/users/telegram/telegram_user_id"]


@pytest.mark.asyncio
async def test_new_user_gets_imported_and_a_wallet():
    fake = FakePrivy(user=None)
    custody = custody_with(fake)
    wallet = await custody.get_or_create_wallet("42")

    assert wallet.wallet_id == "new-wallet"
    assert "/api/v1/users" in fake.calls
    create_payload = custody._request.await_args_list[-1].kwargs["payload"]
    assert create_payload["owner"] == {"user_id": "did:privy:new"}
    assert create_payload["additional_signers"] == [{"signer_id": "signer-1"}]


@pytest.mark.asyncio
async def test_get_wallet_without_user():
    custody = custody_with(FakePrivy(user=None))
    assert await custody.get_wallet("42") is None


@pytest.mark.asyncio
async def test_lookup_errors_other_than_404_propagate():
    custody = PrivyCustody("app-id", "app-secret")
    custody._request = AsyncMock(side_effect=UpstreamError("bad auth", status=401))
    with pytest.raises(UpstreamError, match="bad auth"):
        await custody.get_or_create_wallet("42")


@pytest.mark.asyncio
async def test_sign_transaction():
    custody = custody_with(FakePrivy(USER_WITH_WALLET))
    signed = await custody.sign_transaction("sol-wallet", "dW5zaWduZWQ=")
    assert signed == "c2lnbmVk"
    args = custody._request.await_args
    assert args.args == ("POST", "/v1/wallets/sol-wallet/rpc")
    assert args.kwargs["payload"]["params"] == {"transaction": "dW5zaWduZWQ=",
                                                "encoding": "base64"}


@pytest.mark.asyncio
async def test_sign_without_result_fails():
    custody = PrivyCustody("app-id", "app-secret")
    custody._request = AsyncMock(return_value={"data": {}})
    with pytest.raises(UpstreamError, match="no transaction"):
        await custody.sign_transaction("sol-wallet", "dW5zaWduZWQ=")


@pytest.mark.asyncio
async def test_sign_with_empty_body_fails():
    custody = PrivyCustody("app-id", "app-secret")
    custody._request = AsyncMock(return_value=None)
    with pytest.raises(UpstreamError, match="no usable signing response"):
        await custody.sign_transaction("sol-wallet", "dW5zaWduZWQ=")


def test_headers_carry_app_id():
    custody = PrivyCustody("app-id", "app-secret")
    assert custody._headers()["privy-app-id"] == "app-id"
    assert custody._auth().login == "app-id"
