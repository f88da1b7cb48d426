"""
Tests for the Helius and Solscan adapters against mocked HTTP transports.
"""

import json

import httpx
import pytest

from chainscope.providers.base import ProviderError
from chainscope.providers.helius import HeliusClient
from chainscope.providers.models import Transaction
from chainscope.providers.solscan import SolscanClient
from tests.fakes import BONK_MINT, FOCAL, NOW, SIGNATURE, USDC_MINT, WASH_TRADER


def raw_tx(signature, timestamp, mint=USDC_MINT):
    return {
        "signature": signature,
        "timestamp": timestamp,
        "type": "SWAP",
        "source": "JUPITER",
        "feePayer": FOCAL,
        "tokenTransfers": [
            {
                "mint": mint,
                "fromUserAccount": FOCAL,
                "toUserAccount": WASH_TRADER,
                "tokenAmount": 12.5,
            }
        ],
        "nativeTransfers": None,
    }


def helius(handler) -> HeliusClient:
    return HeliusClient(
        api_key="test-key",
        base_url="https://helius.test/",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=lambda: NOW,
    )


def test_transaction_model_accepts_provider_keys():
    tx = Transaction.model_validate(raw_tx("s1", NOW))

    assert tx.fee_payer == FOCAL
    assert tx.native_transfers == []
    assert tx.token_transfers[0].to_user_account == WASH_TRADER
    assert tx.token_transfers[0].token_amount == 12.5
    assert tx.touches_mint(USDC_MINT)
    assert not tx.touches_mint(BONK_MINT)


@pytest.mark.asyncio
async def test_helius_paginates_until_cutoff():
    """Test pages are followed with ``before`` until the window ends."""
    pages = {
        None: [raw_tx("s1", NOW - 60), raw_tx("s2", NOW - 120)],
        "s2": [raw_tx("s3", NOW - 1800), raw_tx("s4", NOW - 7200), raw_tx("s5", NOW - 7300)],
    }
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        before = request.url.params.get("before")
        return httpx.Response(200, json=pages[before])

    client = helius(handler)
    transactions = await client.get_transactions_by_address(FOCAL, hours_back=1)

    assert [tx.signature for tx in transactions] == ["s1", "s2", "s3"]
    assert len(requests) == 2
    assert requests[0].url.path == f"/v0/addresses/{FOCAL}/transactions"
    assert requests[0].url.params["api-key"] == "test-key"
    assert requests[1].url.params["before"] == "s2"


@pytest.mark.asyncio
async def test_helius_stops_on_empty_page():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params.get("before"))
        if request.url.params.get("before"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=[raw_tx("s1", NOW - 10)])

    transactions = await helius(handler).get_transactions_by_address(FOCAL, hours_back=10)

    assert [tx.signature for tx in transactions] == ["s1"]
    assert calls == [None, "s1"]


@pytest.mark.asyncio
async def test_helius_without_window_returns_one_page():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[raw_tx("s1", NOW - 10), raw_tx("s2", 0)])

    transactions = await helius(handler).get_transactions_by_address(FOCAL)

    assert [tx.signature for tx in transactions] == ["s1", "s2"]


@pytest.mark.asyncio
async def test_helius_token_transactions_filter_by_mint():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("before"):
            return httpx.Response(200, json=[])
        return httpx.Response(
            200,
            json=[raw_tx("s1", NOW - 10, BONK_MINT), raw_tx("s2", NOW - 20, USDC_MINT)],
        )

    transactions = await helius(handler).get_token_transactions(FOCAL, BONK_MINT, 24)

    assert [tx.signature for tx in transactions] == ["s1"]


@pytest.mark.asyncio
async def test_helius_signature_lookup():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v0/transactions"
        assert json.loads(request.content) == {"transactions": [SIGNATURE]}
        return httpx.Response(200, json=[raw_tx(SIGNATURE, NOW)])

    transactions = await helius(handler).get_transactions_by_signature([SIGNATURE])

    assert transactions[0].signature == SIGNATURE


@pytest.mark.asyncio
async def test_helius_http_error_raises():
    """Test failures are raised instead of returning a partial history."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": "rate limited"})

    with pytest.raises(ProviderError) as exc_info:
        await helius(handler).get_transactions_by_address(FOCAL, hours_back=1)

    assert exc_info.value.provider == "helius"
    assert "HTTP 429" in exc_info.value.message


@pytest.mark.asyncio
async def test_helius_malformed_payload_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"transactions": []})

    with pytest.raises(ProviderError):
        await helius(handler).get_transactions_by_address(FOCAL)


@pytest.mark.asyncio
async def test_solscan_lookups():
    """Test search and account-info requests and token listing removal."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/v2/search":
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": [{"isOnCurve": True}],
                    "metadata": {"tokens": {"huge": "listing"}, "accounts": {}},
                },
            )
        return httpx.Response(200, json={"success": True, "data": {"type": "address"}})

    client = SolscanClient(
        base_url="https://solscan.test",
        cookie="cf_clearance=abc",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    search = await client.search(FOCAL)
    account = await client.get_account_info(FOCAL)

    assert search.success is True
    assert "tokens" not in search.data["metadata"]
    assert account.data == {"success": True, "data": {"type": "address"}}
    assert requests[0].url.params["keyword"] == FOCAL
    assert requests[0].headers["cookie"] == "cf_clearance=abc"
    assert requests[1].url.params["address"] == FOCAL
    assert requests[1].url.params["view_as"] == "account"


@pytest.mark.asyncio
async def test_solscan_failure_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="Forbidden")

    client = SolscanClient(
        base_url="https://solscan.test",
        cookie="",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    result = await client.get_account_info(FOCAL)

    assert result.success is False
    assert result.data is None
    assert result.error == "Solscan returned HTTP 403"
