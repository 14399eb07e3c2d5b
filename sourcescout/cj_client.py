"""CJ Dropshipping API client, the one structured (non-scraped) source.

Authentication trades the API key for an access/refresh token pair. Tokens
are kept in memory and in the shared cache so restarts and sibling workers
reuse them; a 401 triggers one refresh-and-retry.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from .cache import CacheBackend
from .config import settings
from .errors import ProviderFailure
from .models import CandidateKind, RawCandidate, SourceId
from .providers import PrimaryProvider

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "cj:tokens"
ACCESS_TOKEN_TTL = 15 * 24 * 60 * 60
REFRESH_TOKEN_TTL = 180 * 24 * 60 * 60
PRODUCT_URL = "https://cjdropshipping.com/product-detail/{id}.html"


def _expiry_timestamp(value: Any) -> float:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value).timestamp()
        except ValueError:
            pass
    return time.time() + ACCESS_TOKEN_TTL


class CJDropshippingClient(PrimaryProvider):
    source_id = SourceId.CJ_DROPSHIPPING
    name = "cj-dropshipping-api"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_url: str | None = None,
        cache: CacheBackend | None = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("headers", {"Content-Type": "application/json"})
        super().__init__(**kwargs)
        self._api_key = settings.cj_api_key if api_key is None else api_key
        self._api_url = (api_url or settings.cj_api_url).rstrip("/")
        self._cache = cache
        self._tokens: Optional[Dict[str, Any]] = None

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _store_tokens(self, data: Dict[str, Any]) -> None:
        self._tokens = {
            "accessToken": data["accessToken"],
            "refreshToken": data.get("refreshToken"),
            "expiresAt": _expiry_timestamp(data.get("accessTokenExpiryDate")),
        }
        if self._cache is not None:
            self._cache.set(TOKEN_CACHE_KEY, self._tokens, REFRESH_TOKEN_TTL)

    async def _post_auth(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.client.post(f"{self._api_url}{path}", json=body)
        response.raise_for_status()
        payload = response.json()
        if payload.get("code") != 200 or not payload.get("data"):
            raise ProviderFailure(self.source_id.value, payload.get("message") or "authentication failed")
        return payload["data"]

    async def authenticate(self) -> None:
        logger.info("cj_auth_start")
        self._store_tokens(await self._post_auth("/authentication/getAccessToken", {"apiKey": self._api_key}))
        logger.info("cj_auth_success")

    async def _refresh(self) -> None:
        refresh_token = (self._tokens or {}).get("refreshToken")
        if not refresh_token:
            await self.authenticate()
            return
        try:
            data = await self._post_auth("/authentication/refreshAccessToken", {"refreshToken": refresh_token})
        except ProviderFailure as exc:
            logger.warning("cj_refresh_failed error=%s, re-authenticating", exc)
            await self.authenticate()
            return
        self._store_tokens(data)
        logger.info("cj_refresh_success")

    async def _access_token(self) -> str:
        if self._tokens is None and self._cache is not None:
            self._tokens = self._cache.get(TOKEN_CACHE_KEY)
        if self._tokens is None:
            await self.authenticate()
        elif self._tokens["expiresAt"] <= time.time():
            await self._refresh()
        return self._tokens["accessToken"]

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self._api_url}{path}"
        token = await self._access_token()
        response = await self.client.get(url, params=params, headers={"CJ-Access-Token": token})
        if response.status_code == 401:
            logger.warning("cj_token_expired, refreshing")
            await self._refresh()
            response = await self.client.get(
                url, params=params, headers={"CJ-Access-Token": self._tokens["accessToken"]}
            )
        response.raise_for_status()
        payload = response.json()
        if payload.get("code") != 200 or payload.get("data") is None:
            raise ProviderFailure(self.source_id.value, payload.get("message") or "search failed")
        return payload["data"]

    async def _fetch(self, query: str, limit: int) -> List[RawCandidate]:
        if not self.is_configured():
            logger.debug("cj_not_configured")
            return []
        data = await self._get(
            "/product/listV2",
            {
                "keyWord": query,
                "page": 1,
                "size": limit,
                "features": ["enable_description", "enable_category"],
                "zonePlatform": "shopify",
                "currency": "USD",
                "sort": "desc",
            },
        )
        products: List[Dict[str, Any]] = []
        for group in data.get("content") or []:
            products.extend(group.get("productList") or [])
        logger.debug("cj_search_page total=%s returned=%s", data.get("totalRecords"), len(products))
        return [self.to_candidate(item) for item in products]

    def to_candidate(self, item: Dict[str, Any]) -> RawCandidate:
        product_id = str(item.get("id") or "")
        price_text = item.get("nowPrice") or item.get("discountPrice") or item.get("sellPrice") or ""
        return RawCandidate(
            title=item.get("nameEn") or "",
            source_id=self.source_id,
            kind=CandidateKind.API,
            price_text=str(price_text),
            # No MOQ on a dropshipping catalogue: single units ship.
            moq_text="1",
            supplier_name=item.get("supplierName") or "",
            image_url=item.get("bigImage"),
            product_url=PRODUCT_URL.format(id=product_id) if product_id else None,
            external_id=product_id or None,
            description=item.get("description"),
        )
