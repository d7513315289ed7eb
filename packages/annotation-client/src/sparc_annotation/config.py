"""Annotation client settings, read from the environment.

  ANNOTATION_SERVER_URL        — base URL of the annotation service (required)
  ANNOTATION_API_KEY           — the caller's API key; when unset the service
                                 falls back to the ``user-token`` credential
  ANNOTATION_TIMEOUT           — per-request budget in seconds (default 10)
  ANNOTATION_CREDENTIALS_PATH  — where the CLI keeps its session credential

A ``.env`` file in the working directory is loaded first for local
development; real environment variables take precedence over it.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel

from sparc_annotation.credentials import FileCredentialStore
from sparc_annotation.service import SERVER_TIMEOUT, AnnotationService

DEFAULT_CREDENTIALS_PATH = Path("~/.sparc-annotation/credentials.json")


class AnnotationSettings(BaseModel):
    """Where the annotation service is and how to talk to it."""

    server_url: str
    api_key: str | None = None
    timeout: float = SERVER_TIMEOUT
    credentials_path: Path = DEFAULT_CREDENTIALS_PATH

    @classmethod
    def from_env(cls, dotenv_path: Path | str | None = None) -> AnnotationSettings:
        """Build settings from environment variables (and an optional .env file)."""
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))

        server_url = os.environ.get("ANNOTATION_SERVER_URL", "")
        if not server_url:
            raise ValueError(
                "ANNOTATION_SERVER_URL is not set. Set it to the base URL of the "
                "map annotation service (e.g., https://example.org/annotator/)."
            )
        timeout = os.environ.get("ANNOTATION_TIMEOUT")
        return cls(
            server_url=server_url,
            api_key=os.environ.get("ANNOTATION_API_KEY") or None,
            timeout=float(timeout) if timeout else SERVER_TIMEOUT,
            credentials_path=Path(
                os.environ.get("ANNOTATION_CREDENTIALS_PATH") or DEFAULT_CREDENTIALS_PATH
            ),
        )

    def create_service(self) -> AnnotationService:
        """An AnnotationService whose session credential persists in ``credentials_path``."""
        return AnnotationService(
            self.server_url,
            api_key=self.api_key,
            credential_store=FileCredentialStore(self.credentials_path),
            timeout=self.timeout,
        )
