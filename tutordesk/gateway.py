import itertools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An unknown network error occurred."

ErrorHandler = Callable[[str, str], None]
TokenProvider = Callable[[], Optional[str]]


class GatewayError(Exception):
    """A request that failed in transport or came back with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return f"HTTP {response.status_code}"
    detail = body.get("detail") or body.get("error")
    if isinstance(detail, list) and detail:
        # FastAPI request validation errors
        first = detail[0]
        return first.get("msg", str(first)) if isinstance(first, dict) else str(first)
    return str(detail) if detail else f"HTTP {response.status_code}"


class PersistenceGateway:
    """CRUD verbs against the REST API. Holds no entity state.

    Failures invoke ``error_handler(message, "error")`` (unless ``quiet``) and
    are then raised as :class:`GatewayError`. Every call is tracked in an
    in-flight set for as long as it is outstanding.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        error_handler: Optional[ErrorHandler] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self.error_handler = error_handler
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self._tokens = itertools.count(1)
        self._in_flight: Dict[int, Tuple[str, str]] = {}

    @property
    def is_loading(self) -> bool:
        return bool(self._in_flight)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def pending_requests(self) -> List[Tuple[int, str, str]]:
        return [(token, method, path) for token, (method, path) in self._in_flight.items()]

    def set_error_handler(self, handler: Optional[ErrorHandler]) -> None:
        self.error_handler = handler

    async def request(self, method: str, path: str, json: Any = None, quiet: bool = False) -> httpx.Response:
        headers = {}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        request_token = next(self._tokens)
        self._in_flight[request_token] = (method, path)
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            self._fail(method, path, str(e) or DEFAULT_ERROR_MESSAGE, None, quiet)
        finally:
            self._in_flight.pop(request_token, None)

        if response.is_error:
            self._fail(method, path, error_message(response), response.status_code, quiet)
        return response

    def _fail(self, method: str, path: str, message: str, status_code: Optional[int], quiet: bool):
        logger.error(f"{method} {path} failed ({status_code}): {message}")
        if self.error_handler is not None and not quiet:
            self.error_handler(message, "error")
        raise GatewayError(message, status_code)

    async def get(self, path: str, quiet: bool = False) -> httpx.Response:
        return await self.request("GET", path, quiet=quiet)

    async def post(self, path: str, json: Any = None, quiet: bool = False) -> httpx.Response:
        return await self.request("POST", path, json=json, quiet=quiet)

    async def put(self, path: str, json: Any = None, quiet: bool = False) -> httpx.Response:
        return await self.request("PUT", path, json=json, quiet=quiet)

    async def delete(self, path: str, json: Any = None, quiet: bool = False) -> httpx.Response:
        return await self.request("DELETE", path, json=json, quiet=quiet)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
