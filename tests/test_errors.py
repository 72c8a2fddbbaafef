import json

import pytest

from awserver.errors import (
    BucketAlreadyExists,
    DatastoreError,
    HttpError,
    InternalError,
    MpscError,
    NoSuchBucket,
    NoSuchKey,
    OldDbVersion,
    Uninitialized,
    export_disposition,
    http_error_from_datastore,
)


def test_bucket_already_exists_maps_to_not_modified():
    err = http_error_from_datastore(BucketAlreadyExists("id"))
    assert err.status == 304
    assert err.to_json() == '{"message":"Bucket \'id\' already exists"}'


def test_no_such_bucket_maps_to_not_found():
    err = http_error_from_datastore(NoSuchBucket("abc"))
    assert err.status == 404
    assert err.message == "The requested bucket 'abc' does not exist"


def test_no_such_key_maps_to_not_found():
    err = http_error_from_datastore(NoSuchKey("settings.x"))
    assert err.status == 404
    assert err.message == "The requested key(s) 'settings.x' do not exist"


def test_mpsc_error_message():
    err = http_error_from_datastore(MpscError())
    assert err.status == 500
    assert err.message == "Unexpected Mpsc error!"


@pytest.mark.parametrize("cls", [InternalError, Uninitialized, OldDbVersion])
def test_message_passthrough_errors(cls):
    err = http_error_from_datastore(cls("some failure"))
    assert err.status == 500
    assert err.message == "some failure"


def test_debug_repr_matches_import_message():
    message = f"Failed to import bucket: {BucketAlreadyExists('id1')!r}"
    body = HttpError(500, message).to_json()
    assert body == r'{"message":"Failed to import bucket: BucketAlreadyExists(\"id1\")"}'


def test_repr_without_detail():
    assert repr(MpscError()) == "MpscError"


def test_subclasses_are_datastore_errors():
    with pytest.raises(DatastoreError) as info:
        raise NoSuchBucket("x")
    err = http_error_from_datastore(info.value)
    assert err.status == 404
    assert err.message == "The requested bucket 'x' does not exist"


def test_http_error_is_raisable_and_roundtrips_json():
    err = HttpError(400, "Too long key")
    with pytest.raises(HttpError) as info:
        raise err
    assert info.value is err
    assert err.status == 400
    assert json.loads(err.to_json()) == {"message": "Too long key"}


def test_export_disposition_single_bucket():
    assert (
        export_disposition({"id1": object()})
        == "attachment; filename=aw-bucket-export_id1.json"
    )


@pytest.mark.parametrize("buckets", [{}, {"a": 1, "b": 2}])
def test_export_disposition_many_or_none(buckets):
    assert export_disposition(buckets) == "attachment; filename=aw-buckets-export.json"