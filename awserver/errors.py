"""Datastore errors and their mapping to JSON HTTP error responses."""

from __future__ import annotations

import json
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any


class DatastoreError(Exception):
    """Base class of errors reported by the datastore."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(*(() if detail is None else (detail,)))
        self.detail = detail

    def __repr__(self) -> str:
        name = type(self).__name__
        if self.detail is None:
            return name
        return f"{name}({json.dumps(self.detail, ensure_ascii=False)})"

    def __str__(self) -> str:
        return self.detail if self.detail is not None else type(self).__name__


class NoSuchBucket(DatastoreError):
    """The requested bucket does not exist; ``detail`` is the bucket ID."""


class BucketAlreadyExists(DatastoreError):
    """A bucket with that ID exists already; ``detail`` is the bucket ID."""


class NoSuchKey(DatastoreError):
    """The requested key does not exist; ``detail`` is the key."""


class MpscError(DatastoreError):
    """Communication with the datastore worker failed."""


class InternalError(DatastoreError):
    """An unexpected failure inside the datastore."""


class Uninitialized(DatastoreError):
    """The datastore has not been initialized, e.g. when upgrading is disabled."""


class OldDbVersion(DatastoreError):
    """The database file has a version that is too old to be used."""


class HttpError(Exception):
    """An error answered with an HTTP status and a JSON ``message`` body."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = HTTPStatus(status)
        self.message = message

    def to_json(self) -> str:
        """Return the response body; the status is not part of it."""
        return json.dumps(
            {"message": self.message}, separators=(",", ":"), ensure_ascii=False
        )

    def __repr__(self) -> str:
        return f"HttpError(status={int(self.status)}, message={self.message!r})"


def http_error_from_datastore(err: DatastoreError) -> HttpError:
    """Translate a datastore error into the HTTP error the API answers with."""
    match err:
        case NoSuchBucket():
            return HttpError(
                HTTPStatus.NOT_FOUND,
                f"The requested bucket '{err.detail}' does not exist",
            )
        case BucketAlreadyExists():
            return HttpError(
                HTTPStatus.NOT_MODIFIED, f"Bucket '{err.detail}' already exists"
            )
        case NoSuchKey():
            return HttpError(
                HTTPStatus.NOT_FOUND,
                f"The requested key(s) '{err.detail}' do not exist",
            )
        case MpscError():
            return HttpError(HTTPStatus.INTERNAL_SERVER_ERROR, "Unexpected Mpsc error!")
        case _:
            return HttpError(HTTPStatus.INTERNAL_SERVER_ERROR, str(err))


def export_disposition(buckets: Mapping[str, Any]) -> str:
    """Return the Content-Disposition header value for a bucket export."""
    if len(buckets) == 1:
        (bucket_id,) = buckets.keys()
        return f"attachment; filename=aw-bucket-export_{bucket_id}.json"
    return "attachment; filename=aw-buckets-export.json"