"""Content-addressed store client (IPFS HTTP API) for pinned score reports"""

import json
import httpx
from typing import Any, Dict
from creditchain_gateway.config import settings
from creditchain_gateway.domain.models import ContentReceipt
from creditchain_gateway.domain.exceptions import ContentStoreError
from creditchain_gateway.infrastructure.observability.metrics import (
    external_latency_histogram,
    external_failure_counter,
)


class ContentStoreClient:
    """Client for storing and fetching JSON blobs by content reference"""

    def __init__(
        self,
        api_base: str | None = None,
        gateway_url: str | None = None,
        timeout: float | None = None,
    ):
        self.api_base = api_base or settings.content_store_api_base
        self.gateway_url = gateway_url or settings.content_gateway_url
        self.timeout = timeout or settings.http_timeout_seconds

    async def put(self, blob: Dict[str, Any]) -> ContentReceipt:
        """
        Add and pin a JSON document.

        Raises:
            ContentStoreError: On timeout, HTTP errors, or a response without a hash
        """
        body = json.dumps(blob, indent=2, default=str)
        data = await self._post(
            "/api/v0/add",
            params={"pin": "true"},
            files={"file": ("report.json", body.encode("utf-8"), "application/json")},
        )
        try:
            content_ref = data.json()["Hash"]
        except (KeyError, ValueError, TypeError) as e:
            raise ContentStoreError(f"Invalid add response from content store: {e}") from e

        return ContentReceipt(content_ref=content_ref, size=len(body), gateway_url=self.gateway_link(content_ref))

    async def get(self, content_ref: str) -> Dict[str, Any]:
        """
        Fetch a JSON document by content reference.

        Raises:
            ContentStoreError: On transport errors or a blob that is not JSON
        """
        response = await self._post("/api/v0/cat", params={"arg": content_ref})
        try:
            return json.loads(response.content)
        except ValueError as e:
            raise ContentStoreError(f"Content {content_ref} is not a JSON document") from e

    def gateway_link(self, content_ref: str) -> str:
        return f"{self.gateway_url}{content_ref}"

    async def _post(self, path: str, **kwargs: Any) -> httpx.Response:
        # The IPFS RPC API only accepts POST
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with external_latency_histogram.labels(service="content").time():
                    response = await client.post(f"{self.api_base}{path}", **kwargs)
                response.raise_for_status()
                return response

            except httpx.TimeoutException as e:
                external_failure_counter.labels(service="content").inc()
                raise ContentStoreError(f"Content store timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                external_failure_counter.labels(service="content").inc()
                raise ContentStoreError(f"Content store error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                external_failure_counter.labels(service="content").inc()
                raise ContentStoreError(f"Content store unreachable: {e}") from e
