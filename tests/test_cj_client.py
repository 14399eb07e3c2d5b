"""CJ Dropshipping API client with a mocked transport."""

import json

import httpx
import pytest

from sourcescout.cj_client import TOKEN_CACHE_KEY, CJDropshippingClient
from sourcescout.models import CandidateKind

API_URL = "https://cj.test/api2.0/v1"

PRODUCTS = {
    "code": 200,
    "data": {
        "totalRecords": 2,
        "content": [
            {
                "productList": [
                    {"id": "P100", "nameEn": "Mini Ice Maker", "nowPrice": "", "discountPrice": "18.40", "sellPrice": "21.00", "bigImage": "https://img.cj.test/p100.jpg"},
                    {"id": "P101", "nameEn": "Ice Scoop", "sellPrice": "1.20 -- 2.00", "supplierName": "CJ Warehouse"},
                ]
            }
        ],
    },
}


def _token(value):
    return {
        "code": 200,
        "data": {
            "accessToken": value,
            "refreshToken": f"refresh-{value}",
            "accessTokenExpiryDate": "2099-01-01T00:00:00+08:00",
        },
    }


@pytest.mark.asyncio
async def test_search_authenticates_refreshes_on_401_and_maps_products(memory_cache):
    """First token is rejected once; the client refreshes and retries."""

    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        seen.append(path.rsplit("/", 1)[-1])
        if path.endswith("/authentication/getAccessToken"):
            assert json.loads(request.content) == {"apiKey": "secret"}
            return httpx.Response(200, json=_token("tok1"))
        if path.endswith("/authentication/refreshAccessToken"):
            assert json.loads(request.content) == {"refreshToken": "refresh-tok1"}
            return httpx.Response(200, json=_token("tok2"))
        if request.headers["CJ-Access-Token"] == "tok1":
            return httpx.Response(401, json={"code": 401})
        assert request.url.params["keyWord"] == "ice maker"
        assert request.url.params["size"] == "5"
        return httpx.Response(200, json=PRODUCTS)

    client = CJDropshippingClient(api_key="secret", api_url=API_URL, cache=memory_cache, transport=httpx.MockTransport(handler))

    candidates = await client.search("ice maker", 5)
    await client.close()

    assert seen == ["getAccessToken", "listV2", "refreshAccessToken", "listV2"]
    assert memory_cache.get(TOKEN_CACHE_KEY)["accessToken"] == "tok2"
    first, second = candidates
    assert first.kind is CandidateKind.API
    assert first.price_text == "18.40"
    assert first.moq_text == "1"
    assert first.product_url == "https://cjdropshipping.com/product-detail/P100.html"
    assert first.external_id == "P100"
    assert second.price_text == "1.20 -- 2.00"
    assert second.supplier_name == "CJ Warehouse"


@pytest.mark.asyncio
async def test_cached_tokens_are_reused(memory_cache):
    memory_cache.set(TOKEN_CACHE_KEY, {"accessToken": "cached", "refreshToken": "r", "expiresAt": 4102444800}, 60)
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        assert request.headers["CJ-Access-Token"] == "cached"
        return httpx.Response(200, json=PRODUCTS)

    client = CJDropshippingClient(api_key="secret", api_url=API_URL, cache=memory_cache, transport=httpx.MockTransport(handler))

    assert len(await client.search("ice maker", 5)) == 2
    assert all(path.endswith("/product/listV2") for path in paths)


@pytest.mark.asyncio
async def test_unconfigured_or_failing_api_returns_empty():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    unconfigured = CJDropshippingClient(api_key="", api_url=API_URL, transport=httpx.MockTransport(refuse))
    assert not unconfigured.is_configured()
    assert await unconfigured.search("ice maker", 5) == []

    def auth_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": 1600001, "message": "Invalid API key", "data": None})

    failing = CJDropshippingClient(api_key="bad", api_url=API_URL, transport=httpx.MockTransport(auth_error))
    assert await failing.search("ice maker", 5) == []
