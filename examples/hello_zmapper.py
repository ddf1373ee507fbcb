import asyncio
from dataclasses import dataclass
from typing import Optional

from bson import ObjectId
from pymongo.write_concern import WriteConcern

from zmongo_mapper import AsyncZMapper, ZMapper


@dataclass
class Friend:
    name: str
    id: Optional[ObjectId] = None


# Connect using MONGO_URI / MONGO_DATABASE_NAME from the environment or .env
zmapper = ZMapper.from_env()
friends = zmapper.get_collection("friends")

friend = Friend("John")
result = friends.with_write_concern(WriteConcern(w=1)).insert(friend)
print(friend.id, result.last_concern)
print(friends.find_one("{name: #}", "John").as_(Friend))
friends.remove(friend.id)
zmapper.close()


async def main():
    async with AsyncZMapper.from_env() as azmapper:
        coll = azmapper.get_collection("friends")
        await coll.insert(Friend("Abby"))
        abby = await coll.find_one("{name: #}", "Abby").as_(Friend)
        await coll.remove(abby.id)
        return abby


print(asyncio.run(main()))
