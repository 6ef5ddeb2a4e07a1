import json
import logging
import time
import httpx
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ozonator.core.config import get_settings
from ozonator.core.exceptions import OzonAPIError
from ozonator.core.utils import clean_text
from ozonator.schemas.credentials import Credential
from ozonator.services.api_archive_service import ApiExchange, RawExchangeArchive
from ozonator.services.ozon.envelope import extract_items, items_or_empty

logger = logging.getLogger(__name__)


def is_not_found(error: OzonAPIError) -> bool:
    return error.is_not_found


class OzonClient:
    """
    Asynchronous client for the Ozon Seller API.

    Every request carries the Client-Id / Api-Key pair of one credential and
    is handed to the raw exchange archive (when one is attached), whether it
    succeeded or not. Versioned operations try the newer path first and fall
    back to the legacy one only when the newer path answers 404.

    Documentation: https://docs.ozon.ru/api/seller/
    """

    PRODUCTION_BASE_URL = "https://api-seller.ozon.ru"

    PRODUCT_LIST_PATH = "/v3/product/list"
    PRODUCT_INFO_PATHS = ("/v3/product/info/list", "/v2/product/info/list")
    PRODUCT_ATTRIBUTES_PATHS = ("/v3/products/info/attributes", "/v4/product/info/attributes")
    CATEGORY_TREE_PATHS = ("/v1/description-category/tree", "/v1/description_category/tree")
    WAREHOUSE_LIST_PATH = "/v1/warehouse/list"
    PLACEMENT_ZONE_PATH = "/v1/product/placement-zone/info"
    FBO_POSTINGS_PATH = "/v2/posting/fbo/list"
    FBS_POSTINGS_PATH = "/v3/posting/fbs/list"
    SELLER_NAME_PATHS = ("/v1/seller/info", "/v2/seller/info", "/v1/seller/company", "/v1/seller/company/info")

    CATEGORY_TREE_TTL_SECONDS = 6 * 60 * 60

    def __init__(
        self,
        credential: Credential,
        archive: Optional[RawExchangeArchive] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Ozon client

        Args:
            credential: Client-Id / Api-Key pair; the Client-Id is also the store identity
            archive: Raw exchange archive receiving every request/response pair
            base_url: Override of the API host (settings by default)
            timeout: HTTP timeout in seconds (settings by default)
            transport: Custom httpx transport (e.g. httpx.MockTransport in tests)
        """
        settings = get_settings()
        self.credential = credential
        self.archive = archive
        self.BASE_URL = (base_url or settings.OZON_BASE_URL or self.PRODUCTION_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.transport = transport
        self._category_tree: Optional[Tuple[float, Any]] = None
        logger.info(f"Initializing OzonClient for store {credential.identity}")

    @property
    def store_identity(self) -> str:
        return self.credential.identity

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        return {
            "Client-Id": self.credential.identity,
            "Api-Key": self.credential.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Any:
        """
        Make a request to the Ozon API

        Args:
            method: HTTP method (POST for almost everything)
            endpoint: API path, e.g. /v3/product/list
            data: JSON body

        Returns:
            Parsed JSON payload (None for an empty body)

        Raises:
            OzonAPIError: non-2xx status, 2xx with an embedded error, or a transport failure
        """
        method = method.upper()
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        headers = self._get_headers()

        masked_headers = headers.copy()
        masked_headers["Api-Key"] = "[REDACTED]"

        logger.debug(f"Making {method} request to {url}")
        logger.debug(f"Headers: {masked_headers}")
        if data:
            logger.debug(f"Data: {json.dumps(data, ensure_ascii=False)[:500]}")

        exchange = ApiExchange(
            method=method,
            endpoint=endpoint,
            store_identity=self.store_identity,
            request_body=data,
            success=False,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    json=data if method != "GET" else None,
                    params=data if method == "GET" else None,
                )

            payload = self._parse_body(response.text)
            exchange.http_status = response.status_code
            exchange.response_body = payload

            if not 200 <= response.status_code < 300:
                message = self._error_message(payload, response.text) or f"HTTP {response.status_code}"
                logger.error(f"Ozon API error {response.status_code} on {endpoint}: {message}")
                raise OzonAPIError(
                    message,
                    http_status=response.status_code,
                    endpoint=endpoint,
                    request_body=data,
                    payload=payload,
                )

            # Ozon sometimes answers 200 with the error inside the body
            if isinstance(payload, dict) and (payload.get("error") or payload.get("errors")):
                message = self._error_message(payload, response.text) or "Ozon API error"
                logger.error(f"Ozon API returned an embedded error on {endpoint}: {message}")
                raise OzonAPIError(
                    message,
                    http_status=response.status_code,
                    endpoint=endpoint,
                    request_body=data,
                    payload=payload,
                )

            exchange.success = True
            return payload

        except OzonAPIError as e:
            exchange.success = False
            exchange.error_message = e.message
            raise
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error on {endpoint}: {str(e)}")
            exchange.success = False
            exchange.error_message = f"Request timed out: {str(e)}"
            raise OzonAPIError(exchange.error_message, endpoint=endpoint, request_body=data)
        except httpx.RequestError as e:
            logger.error(f"Network error on {endpoint}: {str(e)}")
            exchange.success = False
            exchange.error_message = f"Network error: {str(e)}"
            raise OzonAPIError(exchange.error_message, endpoint=endpoint, request_body=data)
        finally:
            await self._archive(exchange)

    @staticmethod
    def _parse_body(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    @staticmethod
    def _error_message(payload: Any, text: str) -> Optional[str]:
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and clean_text(error.get("message")):
                return clean_text(error.get("message"))
            if clean_text(payload.get("message")):
                return clean_text(payload.get("message"))
            errors = payload.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0]
                if isinstance(first, dict) and clean_text(first.get("message")):
                    return clean_text(first.get("message"))
                return clean_text(first)
            if clean_text(error):
                return clean_text(error)
        return clean_text(text)

    async def _archive(self, exchange: ApiExchange) -> None:
        if self.archive is None:
            return
        try:
            await self.archive.record(exchange)
        except Exception:
            # The archive is a side channel; a failed write must not change the call's outcome
            logger.exception(f"Failed to archive {exchange.method} {exchange.endpoint}")

    async def items_from(self, payload: Any, endpoint: str, key: Optional[str] = None, method: str = "POST") -> List[Any]:
        """
        Item list of a response from `endpoint`. The envelope shape found
        (including "unknown") is noted on the endpoint's registry entry.
        """
        envelope = extract_items(payload, key)
        if self.archive is not None:
            try:
                await self.archive.note_envelope_shape(method, endpoint, envelope.shape)
            except Exception:
                logger.exception(f"Failed to note envelope shape of {method} {endpoint}")
        return items_or_empty(payload, key=key, endpoint=endpoint)

    # Generic operations

    async def call(self, method: str, endpoint: str, body: Optional[Dict] = None) -> Any:
        return await self._make_request(method, endpoint, body)

    async def post(self, endpoint: str, body: Optional[Dict] = None) -> Any:
        return await self._make_request("POST", endpoint, body if body is not None else {})

    async def call_with_fallback(
        self,
        paths: Sequence[str],
        body: Optional[Dict] = None,
        method: str = "POST",
        predicate: Callable[[OzonAPIError], bool] = is_not_found,
    ) -> Tuple[Any, str]:
        """
        Call the first path; move on to the next one only when the error
        matches `predicate` (404 by default). Any other error propagates.

        Returns:
            (payload, path that answered)
        """
        if not paths:
            raise ValueError("call_with_fallback needs at least one path")

        for index, path in enumerate(paths):
            try:
                payload = await self.call(method, path, body if body is not None else {})
                return payload, path
            except OzonAPIError as e:
                if index + 1 < len(paths) and predicate(e):
                    logger.info(f"{path} answered {e.http_status}, falling back to {paths[index + 1]}")
                    continue
                raise

    # Products

    async def list_products(self, last_id: str = "", limit: int = 1000) -> Any:
        return await self.post(self.PRODUCT_LIST_PATH, {
            "filter": {"visibility": "ALL"},
            "last_id": last_id or "",
            "limit": limit,
        })

    async def get_product_info(self, product_ids: List[int]) -> List[Dict]:
        if not product_ids:
            return []
        payload, path = await self.call_with_fallback(self.PRODUCT_INFO_PATHS, {"product_id": list(product_ids)})
        return await self.items_from(payload, path)

    async def get_product_attributes(self, product_ids: List[int]) -> List[Dict]:
        if not product_ids:
            return []
        body = {
            "filter": {"product_id": [str(pid) for pid in product_ids], "visibility": "ALL"},
            "limit": len(product_ids),
            "last_id": "",
        }
        payload, path = await self.call_with_fallback(self.PRODUCT_ATTRIBUTES_PATHS, body)
        return await self.items_from(payload, path)

    async def get_category_tree(self) -> List[Dict]:
        """Description-category tree, cached on the client for six hours"""
        now = time.monotonic()
        if self._category_tree is not None:
            fetched_at, nodes = self._category_tree
            if now - fetched_at < self.CATEGORY_TREE_TTL_SECONDS:
                return nodes

        payload, path = await self.call_with_fallback(self.CATEGORY_TREE_PATHS, {})
        nodes = await self.items_from(payload, path)
        self._category_tree = (now, nodes)
        return nodes

    # Warehouses and placement

    async def list_warehouses(self) -> List[Dict]:
        payload = await self.post(self.WAREHOUSE_LIST_PATH, {})
        return await self.items_from(payload, self.WAREHOUSE_LIST_PATH, key="warehouses")

    async def get_placement_zones(
        self,
        warehouse_id: int,
        skus: Optional[List[str]] = None,
        offer_ids: Optional[List[str]] = None,
    ) -> List[Dict]:
        body: Dict[str, Any] = {"warehouse_id": warehouse_id}
        if skus is not None:
            body["skus"] = list(skus)
        if offer_ids is not None:
            body["offer_ids"] = list(offer_ids)
        payload = await self.post(self.PLACEMENT_ZONE_PATH, body)
        return await self.items_from(payload, self.PLACEMENT_ZONE_PATH, key="products")

    # Postings

    async def list_postings(self, endpoint: str, since: str, to: str, limit: int = 1000, offset: int = 0) -> Any:
        """One page of FBO or FBS postings for the period, newest first"""
        return await self.post(endpoint, {
            "dir": "DESC",
            "filter": {"since": since, "to": to},
            "limit": limit,
            "offset": offset,
            "with": {"analytics_data": True, "financial_data": True},
        })

    # Seller

    async def get_store_name(self) -> Optional[str]:
        """
        Store display name. Not every account exposes one of the seller
        methods, so every path is tried and every failure ignored.
        """
        for path in self.SELLER_NAME_PATHS:
            try:
                payload = await self.post(path, {})
            except OzonAPIError as e:
                logger.debug(f"Store name lookup via {path} failed: {e.message}")
                continue
            name = self._pick_store_name(payload)
            if name:
                return name
        return None

    @staticmethod
    def _pick_store_name(payload: Any) -> Optional[str]:
        if not isinstance(payload, dict):
            return None
        result = payload.get("result") if isinstance(payload.get("result"), dict) else {}
        for candidate in (
            result.get("name"),
            result.get("company_name"),
            result.get("seller_name"),
            payload.get("name"),
            payload.get("company_name"),
        ):
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
        return None
