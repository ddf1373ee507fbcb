import os
import unittest
from unittest.mock import MagicMock, patch

import mongomock

from zmongo_mapper import AsyncMappedCollection, AsyncZMapper, MappedCollection, ObjectMapper, ZMapper
from zmongo_mapper.config import MapperSettings


class TestZMapperEnvironment(unittest.TestCase):
    def setUp(self):
        # Backup original environment
        self.original = {k: os.environ.get(k) for k in ("MONGO_URI", "MONGO_DATABASE_NAME", "MAX_POOL_SIZE")}
        for key in self.original:
            os.environ.pop(key, None)

    def tearDown(self):
        for key, value in self.original.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    @patch("zmongo_mapper.config.load_dotenv")
    def test_settings_fall_back_to_defaults(self, mock_load_dotenv):
        settings = MapperSettings.load()

        self.assertEqual(settings.uri, "mongodb://127.0.0.1:27017")
        self.assertEqual(settings.db_name, "test")
        self.assertEqual(settings.max_pool_size, 100)
        mock_load_dotenv.assert_called_once_with(None)

    @patch("zmongo_mapper.config.load_dotenv")
    def test_settings_read_environment(self, mock_load_dotenv):
        os.environ["MONGO_URI"] = "mongodb://db.example:27017"
        os.environ["MONGO_DATABASE_NAME"] = "friends_db"
        os.environ["MAX_POOL_SIZE"] = "7"

        settings = MapperSettings.load(env_file="/tmp/.env_local")

        self.assertEqual(settings.uri, "mongodb://db.example:27017")
        self.assertEqual(settings.db_name, "friends_db")
        self.assertEqual(settings.max_pool_size, 7)
        mock_load_dotenv.assert_called_once_with("/tmp/.env_local")

    @patch("zmongo_mapper.config.load_dotenv")
    @patch("zmongo_mapper.zmapper.MongoClient", new=mongomock.MongoClient)
    def test_from_env_connects_to_named_database(self, mock_load_dotenv):
        with ZMapper.from_env(db_name="explicit") as zmapper:
            self.assertEqual(zmapper.get_database().name, "explicit")
            self.assertIsInstance(zmapper.get_collection("friends"), MappedCollection)

    @patch("zmongo_mapper.config.load_dotenv")
    @patch("motor.motor_asyncio.AsyncIOMotorClient")
    def test_async_from_env_uses_settings_and_mapper(self, mock_client, mock_load_dotenv):
        mapper = ObjectMapper()

        zmapper = AsyncZMapper.from_env(db_name="explicit", mapper=mapper)

        mock_client.assert_called_once_with("mongodb://127.0.0.1:27017", maxPoolSize=100)
        mock_client.return_value.__getitem__.assert_called_once_with("explicit")
        self.assertIs(zmapper.database, mock_client.return_value.__getitem__.return_value)
        self.assertIs(zmapper.mapper, mapper)
        self.assertIsInstance(zmapper.get_collection("friends"), AsyncMappedCollection)

    def test_get_mapper_returns_configured_mapper(self):
        mapper = ObjectMapper()
        zmapper = ZMapper(mongomock.MongoClient()["test"], mapper=mapper)

        self.assertIs(zmapper.get_mapper(), mapper)
        self.assertIs(zmapper.get_collection("friends").mapper, mapper)

    def test_get_query_parses_template(self):
        zmapper = ZMapper(MagicMock())
        self.assertEqual(zmapper.get_query("{name: #}", "John"), {"name": "John"})

    def test_close_closes_client(self):
        database = MagicMock()
        ZMapper(database).close()
        database.client.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
