from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from callhub.core.config import settings


class VapiClientError(Exception):
    pass


class VapiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.vapi_api_key
        self.client = httpx.AsyncClient(
            base_url=base_url or settings.vapi_base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def list_calls(
        self, limit: int = 100, created_after: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if created_after:
            params["createdAtGt"] = created_after.isoformat()
        data = await self._get("/call", params=params)
        if not isinstance(data, list):
            raise VapiClientError("Unexpected response listing calls")
        return data

    async def get_call(self, call_id: str) -> Dict[str, Any]:
        data = await self._get(f"/call/{call_id}")
        if not isinstance(data, dict):
            raise VapiClientError(f"Unexpected response for call {call_id}")
        return data

    async def test_connection(self) -> bool:
        await self._get("/assistant", params={"limit": 1})
        return True

    async def close(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise VapiClientError(f"GET {path} failed: {exc}") from exc
        return response.json()
