"""Weex copy-trading public API client.

Reads the open positions ("open orders") of a trader and the contract id ->
symbol metadata used to label them.
"""

import logging
import threading

import httpx

from traderwatch.errors import PositionFetchError
from traderwatch.services.position_source import OpenPosition, PositionSource

logger = logging.getLogger(__name__)

# Headers the public gateway expects from its web client
WEEX_HEADERS = {
    "appversion": "2.0.0",
    "vs": "A5a7fdv8uvY0GK93vYra79kVV4dQ76ir",
    "content-type": "application/json;charset=UTF-8",
}

# Large enough that one page holds every open position of a trader
FETCH_ALL_PAGE_SIZE = 9999


class ContractMapper:
    """Contract id -> symbol name mapping, loaded from Weex metadata."""

    def __init__(self, api_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._mapping: dict[str, str] = {}
        self._lock = threading.Lock()

    async def load(self) -> int:
        """Fetch the contract list and replace the mapping. Returns its size."""
        url = f"{self.api_url}/meta/getMetaDataV2"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(url, params={"languageType": 1}, headers=WEEX_HEADERS)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PositionFetchError(f"Failed to load contract metadata: {e}") from e

        if body.get("code") != "SUCCESS":
            raise PositionFetchError(
                f"Metadata API returned error: code={body.get('code')}, msg={body.get('msg')}"
            )

        contracts = (body.get("data") or {}).get("contractList") or []
        mapping = {str(c["ci"]): c["cn"] for c in contracts if "ci" in c and "cn" in c}
        with self._lock:
            self._mapping = mapping
        logger.info(f"Loaded {len(mapping)} contract mappings")
        return len(mapping)

    def symbol_for(self, contract_id: str) -> str:
        """Symbol for a contract id, or the id itself when unknown."""
        with self._lock:
            return self._mapping.get(contract_id, contract_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._mapping)


class WeexPositionSource(PositionSource):
    """PositionSource backed by Weex's getOpenOrderList endpoint."""

    def __init__(
        self,
        api_url: str,
        contract_mapper: ContractMapper,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.contract_mapper = contract_mapper
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, headers=WEEX_HEADERS)

    async def fetch_open_positions(self, trader_id: str) -> list[OpenPosition]:
        if not trader_id.isdigit():
            raise PositionFetchError(f"Invalid trader id: {trader_id!r}")

        payload = {
            "traderUserId": trader_id,
            "pageNo": 1,
            "pageSize": FETCH_ALL_PAGE_SIZE,
            "contractId": "",
            "languageType": 1,
        }
        try:
            resp = await self._client.post(f"{self.api_url}/trace/getOpenOrderList", json=payload)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PositionFetchError(f"Failed to fetch open orders for {trader_id}: {e}") from e

        if body.get("code") != "SUCCESS":
            raise PositionFetchError(
                f"API returned error: code={body.get('code')}, msg={body.get('msg')}"
            )

        rows = (body.get("data") or {}).get("rows") or []
        try:
            return [self._to_position(row) for row in rows]
        except (KeyError, TypeError) as e:
            raise PositionFetchError(f"Malformed open order row for {trader_id}: {e}") from e

    def _to_position(self, row: dict) -> OpenPosition:
        contract_id = str(row.get("contractId", ""))
        return OpenPosition(
            position_id=str(row["openOrderId"]),
            symbol=self.contract_mapper.symbol_for(contract_id),
            side=row.get("positionSide", ""),
            size=str(row.get("openSize", "")),
            price=str(row.get("averageOpenPrice", "")),
            leverage=str(row.get("openLeverage", "")),
            open_time=str(row.get("openTime", "")),
            contract_id=contract_id,
            trader_name=row.get("traderName", ""),
            raw=row,
        )

    async def close(self):
        await self._client.aclose()
