# zmongo_mapper/config.py
import os
from typing import Optional, Union
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_MONGO_URI = "mongodb://127.0.0.1:27017"
DEFAULT_DATABASE_NAME = "test"
DEFAULT_MAX_POOL_SIZE = 100
DEFAULT_QUERY_LIMIT = int(os.getenv("DEFAULT_QUERY_LIMIT", 100))


class MapperSettings:
    """Connection settings read from the environment (and an optional .env file)."""

    def __init__(self, uri: str, db_name: str, max_pool_size: int = DEFAULT_MAX_POOL_SIZE):
        self.uri = uri
        self.db_name = db_name
        self.max_pool_size = max_pool_size

    @classmethod
    def load(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        uri: Optional[str] = None,
        db_name: Optional[str] = None,
    ) -> "MapperSettings":
        load_dotenv(env_file)
        return cls(
            uri=uri or os.getenv("MONGO_URI", DEFAULT_MONGO_URI),
            db_name=db_name or os.getenv("MONGO_DATABASE_NAME", DEFAULT_DATABASE_NAME),
            max_pool_size=int(os.getenv("MAX_POOL_SIZE", DEFAULT_MAX_POOL_SIZE)),
        )

    def __repr__(self):
        return f"MapperSettings(uri={self.uri!r}, db_name={self.db_name!r}, max_pool_size={self.max_pool_size})"
