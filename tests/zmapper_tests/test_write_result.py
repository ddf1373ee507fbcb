import pytest
from pymongo.errors import BulkWriteError, DuplicateKeyError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult
from pymongo.write_concern import WriteConcern

from zmongo_mapper import WriteResult
from zmongo_mapper.errors import as_duplicate_key_error

SAFE = WriteConcern(w=1, j=True)


def test_insert_results_count_inserted_documents():
    single = WriteResult.from_driver(InsertOneResult("a", True), SAFE)
    many = WriteResult.from_driver(InsertManyResult(["a", "b", "c"], True), SAFE)

    assert (single.n, single.inserted_id, single.last_concern) == (1, "a", SAFE)
    assert (many.n, many.inserted_ids) == (3, ["a", "b", "c"])


def test_update_result_reports_upsert():
    upserted = WriteResult.from_driver(UpdateResult({"n": 1, "upserted": "new-id"}, True), SAFE)
    existing = WriteResult.from_driver(UpdateResult({"n": 2, "nModified": 2}, True), SAFE)

    assert upserted.n == 1
    assert upserted.upserted_id == "new-id"
    assert not upserted.update_of_existing
    assert existing.n == 2
    assert existing.update_of_existing


def test_delete_and_unacknowledged_results():
    deleted = WriteResult.from_driver(DeleteResult({"n": 4}, True), None)
    unacknowledged = WriteResult.from_driver(DeleteResult({}, False), WriteConcern(w=0))

    assert deleted.n == 4
    assert unacknowledged.n == 0
    assert not unacknowledged.acknowledged
    assert unacknowledged.last_concern == WriteConcern(w=0)


def test_unknown_driver_result_is_rejected():
    with pytest.raises(TypeError):
        WriteResult.from_driver(object(), SAFE)


def test_bulk_write_error_with_duplicate_key_code():
    error = BulkWriteError({"writeErrors": [
        {"index": 0, "code": 121, "errmsg": "validation"},
        {"index": 1, "code": 11000, "errmsg": "E11000 duplicate key error"},
    ]})

    duplicate = as_duplicate_key_error(error)

    assert isinstance(duplicate, DuplicateKeyError)
    assert duplicate.details["index"] == 1


def test_bulk_write_error_without_duplicate_key():
    error = BulkWriteError({"writeErrors": [{"index": 0, "code": 121, "errmsg": "validation"}]})
    assert as_duplicate_key_error(error) is None
