"""
MongoDB side of the backfill: reading pending records and writing results.

`JobSource` turns pending documents into `JobDescriptor`s, `RecordUpdater`
writes the uploaded URLs back with a targeted `$set`.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterator, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .errors import DecodeError, FormatError, UpdateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobDescriptor:
    record_id: str
    source_reference: str


class JobSource:
    def __init__(
        self,
        collection: Collection,
        source_field: str = "temp_link",
        result_field: str = "psf_images",
    ) -> None:
        self._collection = collection
        self.source_field = source_field
        self.result_field = result_field
        self.skipped = 0

    def pending_filter(self) -> Dict[str, Any]:
        return {self.result_field: {"$size": 0}}

    def decode(self, document: Dict[str, Any]) -> JobDescriptor:
        """Build a job from a raw document, raising DecodeError when fields are unusable."""
        record_id = document.get("_id")
        if record_id is None:
            raise DecodeError("document has no _id")
        source = document.get(self.source_field)
        if not isinstance(source, str) or not source:
            raise DecodeError(f"document {record_id} has no usable {self.source_field!r}")
        return JobDescriptor(record_id=str(record_id), source_reference=source)

    def enumerate(self, max_results: int) -> Iterator[JobDescriptor]:
        """
        Lazily yield jobs for records without results, at most `max_results`.

        The cursor is consumed once. Undecodable documents are logged and
        skipped without stopping the enumeration.

        Raises:
            ValueError: when `max_results` is below 1 (MongoDB reads a zero
                limit as unlimited).
        """
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        return self._iter_jobs(max_results)

    def _iter_jobs(self, max_results: int) -> Iterator[JobDescriptor]:
        cursor = self._collection.find(self.pending_filter()).limit(max_results)
        for document in cursor:
            try:
                yield self.decode(document)
            except DecodeError as exc:
                self.skipped += 1
                logger.warning("Failed to decode record: %s", exc)


class RecordUpdater:
    def __init__(self, collection: Collection, result_field: str = "psf_images") -> None:
        self._collection = collection
        self.result_field = result_field

    def apply(self, record_id: str, result_urls: Sequence[str]) -> None:
        """
        Set the result field of one record to `result_urls`.

        Raises:
            FormatError: when `record_id` is not a valid ObjectId.
            UpdateError: when MongoDB rejects the update.
        """
        try:
            oid = ObjectId(record_id)
        except (InvalidId, TypeError) as exc:
            raise FormatError(f"invalid record id {record_id!r}") from exc

        try:
            self._collection.update_one(
                {"_id": oid},
                {"$set": {self.result_field: list(result_urls)}},
            )
        except PyMongoError as exc:
            raise UpdateError(f"update of record {record_id} failed: {exc}") from exc
