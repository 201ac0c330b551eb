"""Best-effort AI description and tagging of source images.

The remote tagging service is an external collaborator. Adapters never
raise to their caller: any failure becomes an empty Annotation.
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Any, Optional, Protocol, runtime_checkable

import requests

from .errors import AnnotationFailed
from .models import Annotation

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
MAX_TAGS = 16


@runtime_checkable
class Annotator(Protocol):
    """Interface every annotation adapter satisfies."""

    def annotate(self, data: bytes, mime_type: str) -> Annotation:
        """Return description and tags for an image, or an empty Annotation."""


class NullAnnotator:
    """Annotator used when no tagging service is configured."""

    def annotate(self, data: bytes, mime_type: str) -> Annotation:
        return Annotation.empty()


def _parse_annotation(payload: Any) -> Annotation:
    if not isinstance(payload, dict):
        raise AnnotationFailed("Annotation response is not a JSON object.")

    description = payload.get("description", "")
    tags = payload.get("tags", [])
    if not isinstance(description, str):
        raise AnnotationFailed("Annotation 'description' must be a string.")
    if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
        raise AnnotationFailed("Annotation 'tags' must be a list of strings.")

    cleaned = [tag.strip() for tag in tags if tag.strip()]
    return Annotation(description=description.strip(), tags=tuple(cleaned[:MAX_TAGS]))


class RemoteAnnotator:
    """Posts images to an HTTP tagging endpoint.

    Request body: ``{"image": <base64>, "mimeType": <mime>}``.
    Expected response: ``{"description": str, "tags": [str, ...]}``.
    One attempt per call, bounded by ``timeout``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.api_key = api_key
        self.session = session

    def request_annotation(self, data: bytes, mime_type: str) -> Annotation:
        """Perform the remote call.

        Raises:
            AnnotationFailed: On network errors, HTTP errors or malformed responses
        """
        if not self.endpoint:
            raise AnnotationFailed("Annotation endpoint is not configured.")

        payload = {
            "image": base64.b64encode(data).decode("ascii"),
            "mimeType": mime_type,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None

        http = self.session or requests
        try:
            response = http.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise AnnotationFailed(f"Annotation request failed: {exc}") from exc

        if response.status_code >= 400:
            raise AnnotationFailed(
                f"Annotation endpoint error {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise AnnotationFailed("Annotation response is not valid JSON.") from exc

        return _parse_annotation(body)

    def annotate(self, data: bytes, mime_type: str) -> Annotation:
        try:
            return self.request_annotation(data, mime_type)
        except AnnotationFailed as exc:
            logger.warning("AI analysis failed: %s", exc)
            return Annotation.empty()


def build_annotator(
    endpoint: Optional[str],
    *,
    timeout: float = DEFAULT_TIMEOUT,
    api_key_env: Optional[str] = None,
) -> Annotator:
    """Create the annotator for a configuration, falling back to NullAnnotator."""
    if not endpoint:
        return NullAnnotator()
    api_key = os.getenv(api_key_env) if api_key_env else None
    return RemoteAnnotator(endpoint, timeout=timeout, api_key=api_key)


def safe_annotate(annotator: Annotator, data: bytes, mime_type: str) -> Annotation:
    """Call ``annotator``; exceptions and non-Annotation results become empty."""
    try:
        result = annotator.annotate(data, mime_type)
    except Exception as exc:  # noqa: BLE001 - annotation failure never fails an item
        logger.warning("AI analysis failed: %s", exc)
        return Annotation.empty()
    if not isinstance(result, Annotation):
        logger.warning("Annotator returned %r instead of an Annotation", type(result).__name__)
        return Annotation.empty()
    return result
