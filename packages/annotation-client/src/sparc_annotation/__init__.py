"""Client library for the SPARC map annotation service.

Provides the AnnotationService, its payload models, and the credential
stores that hold the annotation session between calls.
"""

from sparc_annotation.credentials import (
    API_KEY_COOKIE,
    SESSION_COOKIE,
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
)
from sparc_annotation.models import (
    Annotation,
    ErrorResult,
    MapFeature,
    SuccessResult,
    UserAnnotation,
    UserData,
)
from sparc_annotation.service import AnnotationService

__all__ = [
    "API_KEY_COOKIE",
    "SESSION_COOKIE",
    "Annotation",
    "AnnotationService",
    "CredentialStore",
    "ErrorResult",
    "FileCredentialStore",
    "InMemoryCredentialStore",
    "MapFeature",
    "SuccessResult",
    "UserAnnotation",
    "UserData",
]
