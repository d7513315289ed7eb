"""Live smoke tests against a real annotation server.

These verify that the mocked behavior in test_service.py matches what a
deployed server actually returns: the authenticate payload shape, list
endpoints returning JSON arrays, and error payloads for unknown ids.

Skipped automatically when ANNOTATION_SERVER_URL is not set, so they never
run in regular CI or local dev (unless you point at a real server).

Usage:
  ANNOTATION_SERVER_URL=... ANNOTATION_API_KEY=... pytest -m live -s
"""

from __future__ import annotations

import os

import pytest
from sparc_annotation.config import AnnotationSettings
from sparc_annotation.credentials import InMemoryCredentialStore
from sparc_annotation.models import ErrorResult, UserData
from sparc_annotation.service import AnnotationService

SKIP = not os.environ.get("ANNOTATION_SERVER_URL")
REASON = "ANNOTATION_SERVER_URL not set — requires a running annotation server"

pytestmark = [
    pytest.mark.live,
    pytest.mark.skipif(SKIP, reason=REASON),
]

RESOURCE = os.environ.get("ANNOTATION_LIVE_RESOURCE", "UBERON:0001759")


@pytest.fixture
async def live_service():
    settings = AnnotationSettings.from_env()
    service = AnnotationService(
        settings.server_url,
        api_key=settings.api_key,
        credential_store=InMemoryCredentialStore(),
        timeout=settings.timeout,
    )
    yield service
    await service.close()


class TestLiveService:
    async def test_authenticate_round_trip(self, live_service):
        result = await live_service.authenticate()
        if isinstance(result, ErrorResult):
            assert live_service.current_user is None
            assert live_service.current_error == result
        else:
            assert isinstance(result, UserData)
            assert live_service.current_error is None
            logout = await live_service.unauthenticate()
            assert not isinstance(logout, ErrorResult), logout.error

    async def test_annotated_item_ids_is_list(self, live_service):
        result = await live_service.annotated_item_ids(RESOURCE)
        assert isinstance(result, list), getattr(result, "error", result)

    async def test_unknown_annotation_is_error(self, live_service):
        result = await live_service.annotation("no-such-annotation-id")
        assert isinstance(result, ErrorResult)
