"""Client for a SPARC map annotation service.

AnnotationService turns each method call into exactly one HTTP request:

  authenticate         GET  authenticate
  unauthenticate       GET  unauthenticate
  annotated_item_ids   GET  items/
  drawn_features       GET  features/
  item_annotations     GET  annotations/
  annotation           GET  annotation/
  add_annotation       POST annotation/

Every call resolves to a result value, never an exception, for the failures
a caller should expect: a missing permission, a non-2xx status, an
``{"error": ...}`` payload, a timeout or an unreachable server all come back
as an ErrorResult and are also kept in ``current_error``. There is no retry;
each call gets one attempt within ``timeout`` seconds.

authenticate and unauthenticate share a lock so that only one of them is in
flight at a time. Read calls are not coordinated: concurrent calls on one
service still race on ``current_error`` and the last response wins.

Usage:
    async with AnnotationService("https://annotation.example.org/", api_key=key) as service:
        user = await service.authenticate()
        ids = await service.annotated_item_ids("resource-1")
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from sparc_annotation.credentials import (
    API_KEY_COOKIE,
    SESSION_COOKIE,
    CredentialStore,
    InMemoryCredentialStore,
)
from sparc_annotation.models import (
    Annotation,
    AuthenticateResponse,
    ErrorResult,
    MapFeature,
    SuccessResult,
    UserAnnotation,
    UserData,
    is_error,
)

logger = logging.getLogger(__name__)

SERVER_TIMEOUT = 10.0  # seconds
SESSION_LIFETIME = timedelta(days=1)

JSON_CONTENT = "application/json; charset=utf-8"

CANNOT_ADD_ANNOTATION = "user cannot add annotation"
TIMEOUT_ERROR = "Annotation server timeout"
INVALID_RESPONSE = "Invalid response from annotation server"


def _encode(value: str) -> str:
    """Percent-encode a query value the way encodeURIComponent does."""
    return quote(value, safe="!~*'()")


def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class AnnotationService:
    """Interface to a SPARC map annotation service."""

    def __init__(
        self,
        server_endpoint: str,
        api_key: str | None = None,
        credential_store: CredentialStore | None = None,
        timeout: float = SERVER_TIMEOUT,
    ) -> None:
        if server_endpoint.endswith("/"):
            server_endpoint = server_endpoint[:-1]
        self.server_endpoint = server_endpoint
        self.credentials: CredentialStore = (
            credential_store if credential_store is not None else InMemoryCredentialStore()
        )
        self.timeout = timeout
        self._api_key = api_key
        self._client: httpx.AsyncClient | None = None
        self._session_lock = asyncio.Lock()
        self._current_user: UserData | None = None
        self._current_error: ErrorResult | None = None

    @property
    def current_user(self) -> UserData | None:
        """The user from the last successful authenticate, if any."""
        return self._current_user

    @property
    def current_error(self) -> ErrorResult | None:
        """The most recent error result, if any."""
        return self._current_error

    @property
    def api_key(self) -> str:
        """The caller's API key: the constructor argument, else the ``user-token`` cookie."""
        if self._api_key is not None:
            return self._api_key
        return self.credentials.get(API_KEY_COOKIE) or ""

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> AnnotationService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def authenticate(self) -> UserData | ErrorResult:
        """Authenticate the caller and remember who they are.

        On success the server's session credential is stored (secure, one
        day lifetime) and ``current_user`` is set. On any failure the stored
        session credential is removed and ``current_error`` is set.
        """
        async with self._session_lock:
            self._current_user = None
            self._current_error = None

            payload = await self._request("authenticate")
            if is_error(payload):
                self.credentials.remove(SESSION_COOKIE)
                return self._error(payload)
            try:
                response = AuthenticateResponse.model_validate(payload)
            except ValidationError:
                self.credentials.remove(SESSION_COOKIE)
                return self._error({"error": INVALID_RESPONSE})

            self.credentials.set(
                SESSION_COOKIE,
                response.session,
                secure=True,
                expires=datetime.now(UTC) + SESSION_LIFETIME,
            )
            self._current_user = response.data
            logger.info(
                f"Authenticated '{response.data.name}' "
                f"({'can' if response.data.canUpdate else 'cannot'} update)"
            )
            return self._current_user

    async def unauthenticate(self) -> SuccessResult | ErrorResult:
        """End the server session.

        The stored session credential is removed only when the server
        confirms; after a failure it is kept so the call can be repeated.
        """
        async with self._session_lock:
            self._current_user = None
            self._current_error = None

            payload = await self._request("unauthenticate")
            if is_error(payload):
                return self._error(payload)
            result = SuccessResult(success="unauthenticated")
            if isinstance(payload, dict) and "success" in payload:
                try:
                    result = SuccessResult.model_validate(payload)
                except ValidationError:
                    return self._error({"error": INVALID_RESPONSE})
            self.credentials.remove(SESSION_COOKIE)
            logger.info("Annotation session closed")
            return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def annotated_item_ids(self, resource_id: str) -> list[str] | ErrorResult:
        """Identifiers of all annotated items in a resource."""
        payload = await self._request("items/", parameters={"resource": resource_id})
        if is_error(payload):
            return self._error(payload)
        if not isinstance(payload, list):
            return self._error({"error": INVALID_RESPONSE})
        return [str(item_id) for item_id in payload]

    async def drawn_features(
        self,
        resource_id: str,
        item_ids: list[str] | None = None,
    ) -> list[MapFeature] | ErrorResult:
        """Features drawn in a resource, optionally only those of some items."""
        parameters: dict[str, Any] = {"resource": resource_id}
        if item_ids:
            parameters["items"] = item_ids
        payload = await self._request("features/", parameters=parameters)
        return self._parse_list(payload, MapFeature)

    async def item_annotations(
        self, resource_id: str, item_id: str
    ) -> list[Annotation] | ErrorResult:
        """All annotations about one item in a resource."""
        payload = await self._request(
            "annotations/", parameters={"resource": resource_id, "item": item_id}
        )
        return self._parse_list(payload, Annotation)

    async def annotation(self, annotation_id: str) -> Annotation | ErrorResult:
        """One annotation, by the identifier the server issued for it."""
        payload = await self._request("annotation/", parameters={"annotation": annotation_id})
        if is_error(payload):
            return self._error(payload)
        try:
            return Annotation.model_validate(payload)
        except ValidationError:
            return self._error({"error": INVALID_RESPONSE})

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_annotation(self, user_annotation: UserAnnotation) -> Annotation | ErrorResult:
        """Add an annotation about an item, attributed to the current user.

        Requires a prior successful ``authenticate`` for a user who can
        update; otherwise returns an error without contacting the server.
        """
        if self._current_user is None or not self._current_user.canUpdate:
            return self._error({"error": CANNOT_ADD_ANNOTATION})

        annotation = user_annotation.model_dump(mode="json")
        for optional in ("body", "feature"):
            if annotation.get(optional) is None:
                annotation.pop(optional, None)
        if user_annotation.feature is not None:
            # Features are opaque: send exactly what the caller set, nulls included
            annotation["feature"] = user_annotation.feature.model_dump(
                mode="json", exclude_unset=True
            )
        annotation["creator"] = self._current_user.model_dump(mode="json")
        annotation["created"] = _timestamp()

        payload = await self._request("annotation/", method="POST", parameters={"data": annotation})
        if is_error(payload):
            return self._error(payload)
        try:
            # Servers that only acknowledge the write get back what was sent
            if isinstance(payload, dict) and "resource" not in payload:
                annotation_id = payload.get("id") or payload.get("annotation")
                if annotation_id is not None:
                    return Annotation.model_validate({**annotation, "id": str(annotation_id)})
                return Annotation.model_validate(annotation)
            return Annotation.model_validate(payload)
        except ValidationError:
            return self._error({"error": INVALID_RESPONSE})

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _error(self, payload: dict[str, Any]) -> ErrorResult:
        self._current_error = ErrorResult(error=str(payload["error"]))
        return self._current_error

    def _parse_list(self, payload: Any, model: type[Any]) -> list[Any] | ErrorResult:
        if is_error(payload):
            return self._error(payload)
        if not isinstance(payload, list):
            return self._error({"error": INVALID_RESPONSE})
        try:
            return [model.model_validate(entry) for entry in payload]
        except ValidationError:
            return self._error({"error": INVALID_RESPONSE})

    def build_url(self, endpoint: str, parameters: dict[str, Any] | None = None) -> str:
        """URL of a GET request, with JSON-encoded parameters then key and session.

        Parameters are encoded in insertion order, so identical calls give
        identical URLs.
        """
        params = [f"{name}={_encode(_to_json(value))}" for name, value in (parameters or {}).items()]
        params.append(f"key={_encode(self.api_key)}")
        params.append(f"session={_encode(self.credentials.get(SESSION_COOKIE) or '')}")
        return f"{self.server_endpoint}/{endpoint}?{'&'.join(params)}"

    def build_body(self, parameters: dict[str, Any] | None = None) -> str:
        """JSON body of a POST request: key and session merged with the parameters."""
        body: dict[str, Any] = {
            "key": self.api_key,
            "session": self.credentials.get(SESSION_COOKIE) or "",
        }
        body.update(parameters or {})
        return _to_json(body)

    async def _request(
        self,
        endpoint: str,
        method: Literal["GET", "POST"] = "GET",
        parameters: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request and return its JSON body, or an error payload.

        Non-2xx statuses become ``{"error": "<status> <reason>"}``. A request
        still pending after ``timeout`` seconds is cancelled and becomes
        ``{"error": TIMEOUT_ERROR}``. The success body is returned as is;
        callers check it for an ``error`` key.
        """
        if method == "GET":
            url = self.build_url(endpoint, parameters)
            headers = {"Accept": JSON_CONTENT, "Cache-Control": "no-store"}
            content = None
        else:
            url = f"{self.server_endpoint}/{endpoint}"
            headers = {
                "Accept": JSON_CONTENT,
                "Content-Type": JSON_CONTENT,
                "Cache-Control": "no-store",
            }
            content = self.build_body(parameters)

        client = await self._get_client()
        logger.debug(f"{method} {self.server_endpoint}/{endpoint}")
        try:
            async with asyncio.timeout(self.timeout):
                response = await client.request(method, url, headers=headers, content=content)
        except (TimeoutError, httpx.TimeoutException):
            logger.warning(f"Annotation server timeout after {self.timeout}s: {endpoint}")
            return self._error({"error": TIMEOUT_ERROR}).model_dump()
        except httpx.HTTPError as e:
            logger.warning(f"Annotation server unreachable: {e}")
            return self._error({"error": f"Annotation server unreachable: {e}"}).model_dump()

        if not response.is_success:
            logger.warning(f"Annotation server returned {response.status_code} for {endpoint}")
            error = {"error": f"{response.status_code} {response.reason_phrase}"}
            return self._error(error).model_dump()
        try:
            return response.json()
        except ValueError:
            return self._error({"error": INVALID_RESPONSE}).model_dump()
