"""Vapi REST client."""

from typing import Any, Protocol

import httpx
import structlog

from app.core.errors import VoiceProviderError

logger = structlog.get_logger()


class VoiceProviderClient(Protocol):
    async def create_assistant(self, config: dict) -> str: ...

    async def get_call(self, call_id: str) -> dict: ...


class VapiClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.vapi.ai",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("vapi_request_failed", method=method, path=path, error=str(e))
            raise VoiceProviderError(f"Vapi request failed: {e}", {"path": path}) from e

        if resp.status_code >= 300:
            logger.error(
                "vapi_request_rejected",
                method=method,
                path=path,
                status=resp.status_code,
                body=resp.text[:500],
            )
            raise VoiceProviderError(
                f"Vapi returned {resp.status_code}",
                {"path": path, "status": resp.status_code, "body": resp.text[:500]},
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise VoiceProviderError("Vapi returned a non-JSON body", {"path": path}) from e
        if not isinstance(data, dict):
            raise VoiceProviderError("Vapi returned an unexpected body", {"path": path})
        return data

    async def create_assistant(self, config: dict) -> str:
        data = await self._request("POST", "/assistant", json=config)
        assistant_id = data.get("id")
        if not assistant_id:
            raise VoiceProviderError("Vapi response did not include an assistant id")
        logger.info("vapi_assistant_created", assistant_id=assistant_id, name=config.get("name"))
        return assistant_id

    async def get_call(self, call_id: str) -> dict:
        return await self._request("GET", f"/call/{call_id}")

    async def aclose(self) -> None:
        await self._client.aclose()
