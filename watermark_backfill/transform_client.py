"""
HTTP client for the remote watermark removal service.

The service takes a JSON body `{"image_url": ...}` and answers with the
cleaned image bytes. Retries are left to the caller; here a failure simply
aborts the job.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .config import Settings
from .errors import RemoteStatusError, TransportError

logger = logging.getLogger(__name__)

BODY_SNIPPET_CHARS = 200


class TransformClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.url = settings.transform_url
        self.timeout = (settings.connect_timeout_seconds, settings.request_timeout_seconds)
        if session is None:
            session = requests.Session()
            # One pooled connection per worker thread.
            adapter = requests.adapters.HTTPAdapter(pool_maxsize=settings.worker_count)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self._session = session

    def transform(self, source_reference: str) -> bytes:
        """
        Exchange a source image reference for transformed image bytes.

        Raises:
            ValueError: when the reference is empty.
            TransportError: when the service cannot be reached.
            RemoteStatusError: when the service answers outside 2xx.
        """
        if not source_reference:
            raise ValueError("source_reference must be a non-empty string")

        logger.debug("Requesting transform for %s", source_reference)
        try:
            resp = self._session.post(
                self.url,
                json={"image_url": source_reference},
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"transform request to {self.url} failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            snippet = resp.text[:BODY_SNIPPET_CHARS]
            raise RemoteStatusError(
                f"unexpected HTTP status {resp.status_code} from transform service, body: {snippet}",
                status_code=resp.status_code,
                body=snippet,
            )
        return resp.content
