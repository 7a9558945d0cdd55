import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from dexscan.utils.numbers import format8

logger = logging.getLogger("venue_rest")

SUCCESS_CODES = ("00000", "0", 0)


@dataclass
class VenueResult:
    ok: bool
    data: Any = None
    error: Any = None
    kind: Optional[str] = None
    variant: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"ok": self.ok}
        if self.ok:
            out["data"] = self.data
            out["variant"] = self.variant
        else:
            out["error"] = self.error
            out["kind"] = self.kind
        return out


class VenueCallError(Exception):
    pass


@dataclass
class EndpointVariant:
    """One known revision of a venue endpoint.

    build_request(**params) -> (query, body); parse_response(payload) -> data.
    """
    name: str
    method: str
    path: str
    build_request: Callable[..., Tuple[Dict[str, Any], Optional[Dict[str, Any]]]]
    parse_response: Callable[[Any], Any]


def sign(secret: str, timestamp: str, method: str, request_path: str, body: str = "") -> str:
    prehash = timestamp + method.upper() + request_path + (body or "")
    digest = hmac.new(secret.encode("utf-8"), prehash.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


# ---------------- response parsers -----------------

def _parse_balances(payload: Dict[str, Any]) -> Dict[str, float]:
    balances: Dict[str, float] = {}
    for row in payload.get("data") or []:
        asset = row.get("coin") or row.get("coinName") or row.get("currency")
        if not asset:
            continue
        available = row.get("available")
        if available in (None, ""):
            available = row.get("balance", 0)
        balances[str(asset).upper()] = float(available or 0)
    return balances


def _parse_order(payload: Dict[str, Any]) -> Dict[str, Any]:
    data = payload.get("data") or {}
    return {"order_id": data.get("orderId"), "client_oid": data.get("clientOid") or data.get("clientOrderId"), "raw": payload}


def _row_price(row: Dict[str, Any]) -> float:
    for key in ("lastPr", "close", "last"):
        if row.get(key) not in (None, ""):
            return float(row[key])
    return 0.0


def _parse_ticker(payload: Dict[str, Any]) -> float:
    data = payload.get("data")
    if isinstance(data, list):
        data = data[0] if data else {}
    price = _row_price(data or {})
    if price <= 0:
        raise VenueCallError("ticker without price")
    return price


def _parse_tickers_map(payload: Dict[str, Any]) -> Dict[str, float]:
    out = {}
    for row in payload.get("data") or []:
        symbol = (row.get("symbol") or "").replace("_SPBL", "")
        if symbol:
            out[symbol] = _row_price(row)
    return out


# ---------------- request builders -----------------

def _no_params(**_):
    return {}, None


def _order_v2(symbol, side, quantity, order_type="market", price=None):
    body = {"symbol": symbol, "side": side.lower(), "orderType": order_type, "force": "gtc",
            "size": format8(quantity, round_down=True)}
    if order_type == "limit" and price is not None:
        body["price"] = format8(price)
    return {}, body


def _order_v1(symbol, side, quantity, order_type="market", price=None):
    body = {"symbol": f"{symbol}_SPBL", "side": side.lower(), "orderType": order_type, "force": "normal",
            "quantity": format8(quantity, round_down=True)}
    if order_type == "limit" and price is not None:
        body["price"] = format8(price)
    return {}, body


def _order_v1_legacy(symbol, side, quantity, order_type="market", price=None):
    body = {"symbol": symbol, "side": side.upper(), "size": format8(quantity, round_down=True), "type": order_type}
    if order_type == "limit" and price is not None:
        body["price"] = format8(price)
    return {}, body


def _ticker_v2(symbol):
    return {"symbol": symbol}, None


def _ticker_v1(symbol):
    return {"symbol": f"{symbol}_SPBL"}, None


BALANCE_VARIANTS = [
    EndpointVariant("v2-spot-assets", "GET", "/api/v2/spot/account/assets", _no_params, _parse_balances),
    EndpointVariant("v2-accounts", "GET", "/api/v2/account/accounts", _no_params, _parse_balances),
    EndpointVariant("v1-spot-assets", "GET", "/api/spot/v1/account/assets", _no_params, _parse_balances),
]

ORDER_VARIANTS = [
    EndpointVariant("v2-place-order", "POST", "/api/v2/spot/trade/place-order", _order_v2, _parse_order),
    EndpointVariant("v1-orders", "POST", "/api/spot/v1/trade/orders", _order_v1, _parse_order),
    EndpointVariant("v1-orders-legacy", "POST", "/api/spot/v1/trade/orders", _order_v1_legacy, _parse_order),
]

TICKER_VARIANTS = [
    EndpointVariant("v2-ticker", "GET", "/api/v2/spot/market/tickers", _ticker_v2, _parse_ticker),
    EndpointVariant("v1-ticker", "GET", "/api/spot/v1/market/ticker", _ticker_v1, _parse_ticker),
]

TICKERS_MAP_VARIANTS = [
    EndpointVariant("v2-tickers", "GET", "/api/v2/spot/market/tickers", _no_params, _parse_tickers_map),
    EndpointVariant("v1-tickers", "GET", "/api/spot/v1/market/tickers", _no_params, _parse_tickers_map),
]


class VenueRest:
    """Signed REST access to the trading venue.

    Each logical operation walks an ordered list of endpoint variants and returns
    the first one that answers without error. In demo mode orders are never sent.
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        passphrase: str = "",
        base_url: str = "https://api.bitget.com",
        demo: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
        order_timeout_s: float = 20.0,
        balance_variants: Optional[List[EndpointVariant]] = None,
        order_variants: Optional[List[EndpointVariant]] = None,
        ticker_variants: Optional[List[EndpointVariant]] = None,
        tickers_map_variants: Optional[List[EndpointVariant]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.passphrase = passphrase
        self.base_url = base_url.rstrip("/")
        self.demo = demo
        self.timeout_s = timeout_s
        self.order_timeout_s = order_timeout_s
        self.balance_variants = balance_variants or list(BALANCE_VARIANTS)
        self.order_variants = order_variants or list(ORDER_VARIANTS)
        self.ticker_variants = ticker_variants or list(TICKER_VARIANTS)
        self.tickers_map_variants = tickers_map_variants or list(TICKERS_MAP_VARIANTS)
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self.signed_requests = 0

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret and self.passphrase)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _headers(self, method: str, request_path: str, body: str = "") -> Dict[str, str]:
        timestamp = str(int(self._clock() * 1000))
        return {
            "ACCESS-KEY": self.api_key,
            "ACCESS-SIGN": sign(self.api_secret, timestamp, method, request_path, body),
            "ACCESS-TIMESTAMP": timestamp,
            "ACCESS-PASSPHRASE": self.passphrase,
            "Content-Type": "application/json",
            "locale": "en-US",
        }

    async def _call(self, variant: EndpointVariant, params: Dict[str, Any], signed: bool, timeout: float) -> Any:
        query, body = variant.build_request(**params)
        request_path = variant.path + (f"?{urlencode(query)}" if query else "")
        body_str = json.dumps(body, separators=(",", ":")) if body is not None else ""
        headers = {"Content-Type": "application/json"}
        if signed:
            headers = self._headers(variant.method, request_path, body_str)
            self.signed_requests += 1
        try:
            resp = await self._get_client().request(
                variant.method,
                self.base_url + request_path,
                content=body_str or None,
                headers=headers,
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise VenueCallError(f"{type(e).__name__}: {e}") from e
        try:
            payload = resp.json()
        except ValueError:
            payload = {"raw": resp.text[:500]}
        if resp.status_code >= 400:
            raise VenueCallError(f"HTTP {resp.status_code}: {payload}")
        if isinstance(payload, dict) and "code" in payload and payload["code"] not in SUCCESS_CODES:
            raise VenueCallError(f"code {payload.get('code')}: {payload.get('msg')}")
        try:
            return variant.parse_response(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise VenueCallError(f"unexpected response shape: {e}") from e

    async def _try_variants(self, operation: str, variants: List[EndpointVariant], params: Dict[str, Any],
                            signed: bool, timeout: float) -> VenueResult:
        if signed and not self.has_credentials:
            return VenueResult(ok=False, error="no keys", kind="NoCredentials")
        errors = []
        for variant in variants:
            try:
                data = await self._call(variant, params, signed, timeout)
                logger.debug("%s succeeded via %s", operation, variant.name)
                return VenueResult(ok=True, data=data, variant=variant.name)
            except VenueCallError as e:
                logger.info("%s variant %s failed: %s", operation, variant.name, e)
                errors.append({"variant": variant.name, "error": str(e)})
        logger.warning("%s failed on all %d variants", operation, len(variants))
        return VenueResult(ok=False, error=errors, kind="VenueError")

    async def get_balances(self) -> VenueResult:
        return await self._try_variants("balances", self.balance_variants, {}, True, self.timeout_s)

    async def place_order(self, symbol: str, side: str, quantity: float, order_type: str = "market",
                          price: Optional[float] = None) -> VenueResult:
        if self.demo:
            return VenueResult(ok=False, error="Demo mode", kind="Demo")
        params = {"symbol": symbol, "side": side, "quantity": quantity, "order_type": order_type, "price": price}
        result = await self._try_variants("place_order", self.order_variants, params, True, self.order_timeout_s)
        if result.ok:
            logger.info("Order placed symbol=%s side=%s qty=%s via %s", symbol, side, quantity, result.variant)
        return result

    async def get_ticker(self, symbol: str) -> VenueResult:
        return await self._try_variants("ticker", self.ticker_variants, {"symbol": symbol}, False, self.timeout_s)

    async def get_tickers_map(self) -> Dict[str, float]:
        result = await self._try_variants("tickers", self.tickers_map_variants, {}, False, self.timeout_s)
        return result.data if result.ok else {}


__all__ = ["VenueRest", "VenueResult", "EndpointVariant", "sign"]
