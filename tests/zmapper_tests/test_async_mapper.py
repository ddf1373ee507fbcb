from dataclasses import dataclass
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bson import ObjectId
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult
from pymongo.write_concern import WriteConcern

from zmongo_mapper import AsyncZMapper


@dataclass
class Friend:
    name: str
    id: Optional[ObjectId] = None


def make_collection():
    db_collection = MagicMock()
    db_collection.name = "friends"
    db_collection.write_concern = WriteConcern()
    database = MagicMock()
    database.__getitem__.return_value = db_collection
    return AsyncZMapper(database).get_collection("friends"), db_collection


@pytest.mark.asyncio
async def test_insert_generates_id_and_calls_insert_one():
    collection, db_collection = make_collection()
    db_collection.insert_one = AsyncMock(side_effect=lambda doc: InsertOneResult(doc["_id"], True))
    friend = Friend("John")

    result = await collection.insert(friend)

    assert isinstance(friend.id, ObjectId)
    assert result.inserted_id == friend.id
    db_collection.insert_one.assert_awaited_once_with({"_id": friend.id, "name": "John"})


@pytest.mark.asyncio
async def test_insert_many_objects_and_templates():
    collection, db_collection = make_collection()
    db_collection.insert_many = AsyncMock(return_value=InsertManyResult([1, 2], True))
    db_collection.insert_one = AsyncMock(return_value=InsertOneResult(3, True))

    many = await collection.insert(Friend("John"), Friend("Robert"))
    single = await collection.insert("{name: #}", "Abby")

    assert many.n == 2
    assert single.n == 1
    db_collection.insert_one.assert_awaited_once_with({"name": "Abby"})


@pytest.mark.asyncio
async def test_with_write_concern_is_reported():
    collection, db_collection = make_collection()
    db_collection.with_options.return_value = db_collection
    db_collection.insert_one = AsyncMock(return_value=InsertOneResult(1, True))
    safe = WriteConcern(w="majority")

    result = await collection.with_write_concern(safe).insert("{name: 'Abby'}")

    db_collection.with_options.assert_called_once_with(write_concern=safe)
    assert result.last_concern == safe


@pytest.mark.asyncio
async def test_find_one_as_object():
    collection, db_collection = make_collection()
    object_id = ObjectId()
    db_collection.find_one = AsyncMock(return_value={"_id": object_id, "name": "John"})

    friend = await collection.find_one("{name: #}", "John").as_(Friend)

    assert friend == Friend("John", object_id)
    db_collection.find_one.assert_awaited_once_with({"name": "John"}, projection=None)


@pytest.mark.asyncio
async def test_find_as_list_uses_default_limit():
    collection, db_collection = make_collection()
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[{"name": "John"}, {"name": "Robert"}])
    db_collection.find.return_value = cursor

    friends = await collection.find().as_(Friend)

    assert [f.name for f in friends] == ["John", "Robert"]
    cursor.to_list.assert_awaited_once_with(length=100)


@pytest.mark.asyncio
async def test_update_count_and_remove():
    collection, db_collection = make_collection()
    db_collection.update_one = AsyncMock(
        return_value=UpdateResult({"n": 1, "nModified": 1, "updatedExisting": True}, True)
    )
    db_collection.count_documents = AsyncMock(return_value=7)
    db_collection.delete_many = AsyncMock(return_value=DeleteResult({"n": 2}, True))

    updated = await collection.update("{name: 'John'}").with_("{$set: {name: #}}", "Johnny")
    counted = await collection.count("{name: 'Johnny'}")
    removed = await collection.remove("{name: 'Johnny'}")

    assert updated.n == 1 and updated.update_of_existing
    assert counted == 7
    assert removed.n == 2
    db_collection.update_one.assert_awaited_once_with(
        {"name": "John"}, {"$set": {"name": "Johnny"}}, upsert=False
    )


@pytest.mark.asyncio
async def test_duplicate_key_propagates_and_is_logged():
    collection, db_collection = make_collection()
    db_collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key", 11000))

    with patch("zmongo_mapper.mapped_collection.logger") as mock_logger:
        with pytest.raises(DuplicateKeyError):
            await collection.insert(Friend("John", ObjectId()))

    mock_logger.warning.assert_called_once()
    assert "Duplicate key" in mock_logger.warning.call_args[0][0]


@pytest.mark.asyncio
async def test_bulk_duplicate_becomes_duplicate_key_error():
    collection, db_collection = make_collection()
    db_collection.insert_many = AsyncMock(
        side_effect=BulkWriteError({"writeErrors": [{"index": 1, "code": 11000, "errmsg": "E11000 duplicate key"}]})
    )

    with pytest.raises(DuplicateKeyError) as excinfo:
        await collection.insert(Friend("John"), Friend("Robert"))

    assert excinfo.value.code == 11000


@pytest.mark.asyncio
async def test_other_driver_errors_are_logged_and_raised():
    collection, db_collection = make_collection()
    db_collection.count_documents = AsyncMock(side_effect=PyMongoError("Connection lost"))

    with patch("zmongo_mapper.mapped_collection.logger") as mock_logger:
        with pytest.raises(PyMongoError):
            await collection.count()

    mock_logger.error.assert_called_once()
    assert "Connection lost" in mock_logger.error.call_args[0][0]


@pytest.mark.asyncio
async def test_close_closes_client():
    database = MagicMock()
    async with AsyncZMapper(database):
        pass
    database.client.close.assert_called_once()
