"""Ledger gateway client - anchors score hashes with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Any, Dict, List
from creditchain_gateway.config import settings
from creditchain_gateway.domain.models import LedgerReceipt, LedgerEntry, LedgerVerification, LedgerStatus
from creditchain_gateway.domain.exceptions import LedgerError
from creditchain_gateway.infrastructure.observability.metrics import (
    external_latency_histogram,
    external_failure_counter,
)


class LedgerClient:
    """Client for the service that signs, broadcasts and confirms ledger transactions"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.ledger_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.ledger_max_retries
        self.backoff_base = settings.ledger_backoff_base

    async def submit_score(self, address: str, score: int, data_hash: str, content_ref: str) -> LedgerReceipt:
        """
        Anchor a score, its data hash and content reference for an address.

        Raises:
            LedgerError: After the final failed attempt, or on a malformed receipt
        """
        payload = {
            "address": address,
            "score": score,
            "dataHash": f"0x{data_hash}",
            "contentRef": content_ref,
        }
        data = await self._post_with_retry("/credit-scores", payload, "submit")
        return self._receipt(data)

    async def register_identity(self, address: str, pan_hash: str, aadhaar_hash: str) -> LedgerReceipt:
        """
        Register an address together with hashes of its identity documents.

        Raises:
            LedgerError: After the final failed attempt, or on a malformed receipt
        """
        payload = {
            "address": address,
            "panHash": f"0x{pan_hash}",
            "aadhaarHash": f"0x{aadhaar_hash}",
        }
        data = await self._post_with_retry("/identities", payload, "registration")
        return self._receipt(data)

    async def _post_with_retry(self, path: str, payload: Dict[str, Any], action: str) -> Dict[str, Any]:
        """
        POST a state-changing ledger call.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base... (base^attempt)
        - Retries on 5xx errors and network failures; 4xx fails immediately
        - Tracks latency histogram and failure counter
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                try:
                    with external_latency_histogram.labels(service="ledger").time():
                        response = await client.post(f"{self.base_url}{path}", json=payload)
                        response.raise_for_status()
                    return response.json()

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    external_failure_counter.labels(service="ledger").inc()

                    retryable = not isinstance(e, httpx.HTTPStatusError) or e.response.status_code >= 500
                    if not retryable or attempt >= self.max_retries:
                        raise LedgerError(f"Ledger {action} failed after {attempt} attempt(s): {e}") from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

                except ValueError as e:
                    raise LedgerError(f"Invalid JSON from ledger: {e}") from e

    @staticmethod
    def _receipt(data: Dict[str, Any]) -> LedgerReceipt:
        try:
            return LedgerReceipt(
                tx_ref=data["transactionHash"],
                block_ref=int(data["blockNumber"]),
                gas_used=str(data.get("gasUsed", "0")),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerError(f"Invalid ledger receipt: {e}") from e

    async def fetch_history(self, address: str) -> List[LedgerEntry]:
        """Past anchored scores for an address, oldest first"""
        data = await self._get(f"/credit-scores/{address}/history")
        try:
            return [
                LedgerEntry(
                    score=int(record["score"]),
                    data_hash=record["dataHash"],
                    timestamp=int(record["timestamp"]),
                    content_ref=record["contentRef"],
                    tx_ref=record.get("transactionHash"),
                    block_ref=record.get("blockNumber"),
                )
                for record in data.get("history", [])
            ]
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerError(f"Invalid ledger history: {e}") from e

    async def verify(self, tx_ref: str) -> LedgerVerification:
        """Look up a ledger transaction receipt"""
        data = await self._get(f"/transactions/{tx_ref}")
        try:
            return LedgerVerification(
                is_valid=bool(data["isValid"]),
                block_ref=int(data["blockNumber"]),
                timestamp=int(data["timestamp"]),
                gas_used=str(data["gasUsed"]),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerError(f"Invalid ledger receipt: {e}") from e

    async def status(self) -> LedgerStatus:
        """Network name, chain id, head block and gas price as seen by the gateway"""
        data = await self._get("/status")
        try:
            return LedgerStatus(
                network=str(data["network"]),
                chain_id=int(data["chainId"]),
                current_block=int(data["blockNumber"]),
                gas_price=str(data["gasPrice"]),
                signer_address=data.get("signerAddress"),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerError(f"Invalid ledger status: {e}") from e

    async def _get(self, path: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                with external_latency_histogram.labels(service="ledger").time():
                    response = await client.get(f"{self.base_url}{path}")
                response.raise_for_status()
                return response.json()

            except httpx.TimeoutException as e:
                external_failure_counter.labels(service="ledger").inc()
                raise LedgerError(f"Ledger timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                external_failure_counter.labels(service="ledger").inc()
                raise LedgerError(f"Ledger error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                external_failure_counter.labels(service="ledger").inc()
                raise LedgerError(f"Ledger unreachable: {e}") from e
            except ValueError as e:
                raise LedgerError(f"Invalid JSON from ledger: {e}") from e

    def explorer_url(self, tx_ref: str) -> str:
        return f"{settings.ledger_explorer_base}{tx_ref}"
