"""
InsightSentry REST client.

Every REST tool goes through InsightSentryClient.get(): build the URL from
the configured base URL, attach the API key header, perform one GET and
return the decoded JSON. Failures are logged and turned into the generic
error object {"error": "<message>"} so callers never see an exception for
a bad upstream response.
"""

import logging
from typing import Any

import httpx

from insightsentry_tools.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred while fetching data."


class WebSocketKeyError(RuntimeError):
    """Raised when the streaming key cannot be obtained from the key service"""


def _clean_params(params: dict[str, Any] | None) -> dict[str, str] | None:
    """Drop None values and render booleans the way the API expects (true/false)"""
    if not params:
        return None
    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


class InsightSentryClient:
    """Thin async wrapper around the InsightSentry REST API"""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers["X-RapidAPI-Key"] = self.settings.api_key
        return headers

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        error_message: str = DEFAULT_ERROR_MESSAGE,
    ) -> Any:  # noqa: ANN401
        """GET {base_url}{path} and return the JSON body, or {"error": error_message}"""
        url = f"{self.settings.base_url.rstrip('/')}{path}"
        try:
            logger.debug(f"InsightSentry API call: GET {url} params={params}")
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            ) as http:
                response = await http.get(url, params=_clean_params(params), headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"GET {path} failed with status {e.response.status_code}: {e.response.text[:200]}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"GET {path} failed: {e}")
        return {"error": error_message}

    async def get_websocket_key(self, rest_api_key: str | None = None) -> str:
        """Obtain the streaming (WebSocket) key, which is distinct from the REST key

        Raises:
            ValueError: no REST key passed or configured
            WebSocketKeyError: the key service failed or returned no key
        """
        key = rest_api_key or self.settings.api_key
        if not key:
            msg = "get_websocket_key() requires a REST API key"
            raise ValueError(msg)

        url = f"{self.settings.key_service_url.rstrip('/')}/v2/websocket-key"
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                transport=self._transport,
            ) as http:
                response = await http.get(
                    url,
                    headers={"Authorization": f"Bearer {key}", "Accept": "application/json"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            msg = (
                "Failed to obtain WebSocket API key: "
                f"{e.response.status_code} {e.response.reason_phrase}"
            )
            raise WebSocketKeyError(msg) from e
        except (httpx.HTTPError, ValueError) as e:
            msg = f"Error obtaining WebSocket API key: {e}"
            raise WebSocketKeyError(msg) from e

        websocket_key = data.get("websocket_key") if isinstance(data, dict) else None
        if not websocket_key:
            msg = "websocket_key not found in response"
            raise WebSocketKeyError(msg)
        return str(websocket_key)


def is_error(data: Any) -> bool:  # noqa: ANN401
    """True when data is missing or a generic error object"""
    return not data or (isinstance(data, dict) and "error" in data)
