from redis import asyncio as aioredis

from driveshare.config import settings

redis_client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
