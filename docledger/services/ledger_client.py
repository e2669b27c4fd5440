"""Client applications use to invoke the docledger contract over HTTP."""
import json
import time
from typing import Any, Optional

import httpx

from docledger.config import settings
from docledger.logging import get_logger
from docledger.services.contract import (
    CHANGE_OWNER,
    CHANGE_STATUS,
    CREATE_DOC,
    GET_HISTORY,
    INIT_LEDGER,
    QUERY_ALL_DOCS,
    QUERY_DOC,
)

logger = get_logger(__name__)


class DocLedgerApiError(Exception):
    """Raised when the host rejects an invocation or cannot be reached."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"DocLedger API error {status_code}: {detail}")


class DocLedgerClient:
    """Async client for the chaincode host's invoke endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL of the host API. Defaults to settings.api_base.
            transport: Optional httpx transport, mainly for tests.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url or settings.api_base
        self.transport = transport
        self.timeout = timeout

    async def invoke(self, function: str, *args: str) -> bytes:
        """
        Invoke a contract function.

        Returns:
            The raw response payload

        Raises:
            DocLedgerApiError: If the contract returns an error or the request fails
        """
        url = f"{self.base_url}/v1/invoke"
        body = {"function": function, "args": list(args)}

        start_time = time.perf_counter()
        logger.info("ledger_invoke_started", function=function, arg_count=len(args))

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(url, json=body)
            except httpx.RequestError as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "ledger_invoke_request_error",
                    function=function,
                    duration_ms=round(duration_ms, 2),
                    error=str(e),
                    outcome="error",
                )
                raise DocLedgerApiError(503, f"Request failed: {e}")

        duration_ms = (time.perf_counter() - start_time) * 1000

        if response.status_code != 200:
            detail = _error_detail(response)
            logger.warning(
                "ledger_invoke_rejected",
                function=function,
                status_code=response.status_code,
                detail=detail,
                duration_ms=round(duration_ms, 2),
                outcome="error",
            )
            raise DocLedgerApiError(response.status_code, detail)

        data = response.json()
        logger.info(
            "ledger_invoke_completed",
            function=function,
            tx_id=data.get("tx_id"),
            duration_ms=round(duration_ms, 2),
            outcome="success",
        )
        return data.get("payload", "").encode("utf-8")

    async def query_doc(self, key: str) -> Optional[dict[str, Any]]:
        """Fetch one document, or None if the key holds nothing."""
        payload = await self.invoke(QUERY_DOC, key)
        return json.loads(payload) if payload else None

    async def init_ledger(self) -> None:
        await self.invoke(INIT_LEDGER)

    async def create_doc(self, key: str, status: str, owner: str) -> None:
        await self.invoke(CREATE_DOC, key, status, owner)

    async def query_all_docs(self) -> list[dict[str, Any]]:
        return json.loads(await self.invoke(QUERY_ALL_DOCS))

    async def change_owner(self, key: str, owner: str) -> None:
        await self.invoke(CHANGE_OWNER, key, owner)

    async def change_owner_and_status(self, key: str, owner: str, status: str) -> None:
        await self.invoke(CHANGE_STATUS, key, owner, status)

    async def get_history(self, key: str) -> list[dict[str, Any]]:
        return json.loads(await self.invoke(GET_HISTORY, key))


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        return data.get("message") or str(data.get("detail", response.text))
    return response.text
