"""
Error types raised by the backfill clients.

Library exceptions (requests, botocore, pymongo, bson) are wrapped at the
client boundary so the worker pool only has to reason about this taxonomy.
"""

from __future__ import annotations

from typing import Optional


class BackfillError(Exception):
    """Base class for every error raised by the backfill pipeline."""


class TransportError(BackfillError):
    """The remote service could not be reached or the call timed out."""


class RemoteStatusError(BackfillError):
    """A remote service answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeError(BackfillError):
    """A record returned by the store cannot be turned into a job."""


class FormatError(BackfillError):
    """A record identifier is not a valid store identifier."""


class UpdateError(BackfillError):
    """The record store rejected the result update."""


class FatalError(BackfillError):
    """Startup failure that must abort the whole run."""


class QueueClosed(Exception):
    """Raised on put after close, and on get once the queue is closed and drained."""
