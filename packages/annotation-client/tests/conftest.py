"""Shared test fixtures for annotation client tests.

Provides:
  - Mock HTTP transport for httpx (intercepts all requests)
  - An in-memory credential store and a service wired to it
  - Canned server payloads for users, annotations and features
"""

import asyncio
from typing import Any

import httpx
import pytest
from sparc_annotation.credentials import InMemoryCredentialStore
from sparc_annotation.service import AnnotationService

SERVER_URL = "https://annotation.example.org/sparc/"
API_KEY = "test-api-key"


class MockTransport(httpx.AsyncBaseTransport):
    """Mock HTTP transport that returns preconfigured responses.

    Usage:
        transport = MockTransport(responses=[
            httpx.Response(200, json={"session": "abc", "data": {...}}),
        ])
        inject_transport(service, transport)

    Each call to handle_async_request pops the next response from the list.
    If the list is exhausted, returns a 500 error. A ``delay`` holds every
    response back for that many seconds; an ``exception`` is raised instead
    of responding.
    """

    def __init__(
        self,
        responses: list[httpx.Response] | None = None,
        delay: float = 0.0,
        exception: Exception | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []
        self.delay = delay
        self.exception = exception
        self.in_flight = 0
        self.max_in_flight = 0

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.exception is not None:
                raise self.exception
        finally:
            self.in_flight -= 1
        if self.responses:
            response = self.responses.pop(0)
            response.stream = httpx.ByteStream(response.content)
            return response
        return httpx.Response(500, json={"error": "No more mock responses"})


def inject_transport(service: AnnotationService, transport: httpx.AsyncBaseTransport) -> None:
    """Inject a mock transport into a service's HTTP client."""
    service._client = httpx.AsyncClient(transport=transport)


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
async def service(credential_store):
    service = AnnotationService(SERVER_URL, api_key=API_KEY, credential_store=credential_store)
    yield service
    await service.close()


@pytest.fixture
def user_payload() -> dict[str, Any]:
    return {
        "name": "Ada Curator",
        "email": "ada@example.org",
        "orcid": "0000-0002-1825-0097",
        "canUpdate": True,
    }


@pytest.fixture
def auth_payload(user_payload) -> dict[str, Any]:
    return {"session": "session-abc", "data": user_payload}


@pytest.fixture
def annotation_payload(user_payload) -> dict[str, Any]:
    return {
        "id": "https://annotation.example.org/sparc/annotation/17",
        "resource": "UBERON:0001759",
        "item": "ilxtr:neuron-type-keast-7",
        "evidence": ["https://doi.org/10.1000/xyz123"],
        "comment": "Pathway terminates in the bladder neck",
        "created": "2026-03-02T09:15:00.000Z",
        "creator": user_payload,
    }


@pytest.fixture
def feature_payload() -> dict[str, Any]:
    return {
        "id": 42,
        "geometry": {"type": "Point", "coordinates": [12.5, -3.25]},
        "properties": {"label": "Injection site", "drawn": True},
    }
