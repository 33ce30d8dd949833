"""
Redis manager for monitoring live updates.
Carries per-domain change notifications over pub/sub channels.
"""

import asyncio
import json
from typing import AsyncIterator, Optional

import pydantic
import redis.asyncio as redis
from redis.asyncio import Redis

from config import settings
from models.events import ChangeNotification
from utils.logging import get_logger

logger = get_logger("redis_manager")

# Global Redis client instance
_redis_client: Optional[Redis] = None
# Serializes first connect so concurrent subscribers share one client
_redis_lock = asyncio.Lock()


async def get_redis() -> Optional[Redis]:
    """Get the global Redis client instance, or None when Redis is unreachable."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    async with _redis_lock:
        if _redis_client is not None:
            return _redis_client

        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            health_check_interval=30,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        try:
            await client.ping()
        except redis.ConnectionError as e:
            logger.warning(
                "Failed to connect to Redis, live updates are disabled",
                extra={"data": {"error": str(e), "url": settings.REDIS_URL}}
            )
            await client.close()
            return None

        _redis_client = client
        logger.info(
            "Connected to Redis successfully",
            extra={"data": {"url": settings.REDIS_URL}}
        )

    return _redis_client


async def subscribe(channel: str) -> AsyncIterator[ChangeNotification]:
    """
    Subscribe to a Redis channel and yield change notifications.

    Malformed messages are logged and skipped. The channel is unsubscribed
    when the consumer stops iterating or is cancelled.

    Args:
        channel: Redis channel name to subscribe to

    Yields:
        ChangeNotification: Notifications received from the channel
    """
    redis_client = await get_redis()
    if redis_client is None:
        logger.warning(
            f"Redis not available, cannot subscribe to channel: {channel}",
            extra={"data": {"channel": channel}}
        )
        return

    pubsub = redis_client.pubsub()

    try:
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to Redis channel: {channel}", extra={"data": {"channel": channel}})

        async for message in pubsub.listen():
            if message['type'] != 'message':
                continue
            try:
                notification = ChangeNotification(**json.loads(message['data']))
            except (json.JSONDecodeError, TypeError, pydantic.ValidationError) as e:
                logger.error(
                    "Failed to parse change notification from Redis",
                    extra={
                        "data": {
                            "channel": channel,
                            "message": str(message['data'])[:100],
                            "error": str(e)
                        }
                    }
                )
                continue

            logger.debug(
                "Received change notification",
                extra={"data": {"notification_id": notification.id, "domain": notification.domain, "channel": channel}}
            )
            yield notification

    except redis.ConnectionError:
        logger.warning(
            f"Redis connection lost during subscription to {channel}",
            extra={"data": {"channel": channel}}
        )
    finally:
        try:
            await pubsub.unsubscribe(channel)
            await pubsub.close()
            logger.info(f"Unsubscribed from Redis channel: {channel}", extra={"data": {"channel": channel}})
        except Exception as e:
            logger.debug(f"Error during Redis cleanup: {e}")


async def check_redis_connection() -> bool:
    """
    Test Redis connection health.

    Returns:
        bool: True if Redis is healthy, False otherwise
    """
    redis_client = await get_redis()
    if redis_client is None:
        return False
    try:
        await redis_client.ping()
        return True
    except redis.RedisError as e:
        logger.error("Redis health check failed", extra={"data": {"error": str(e)}})
        return False


async def close_redis():
    """Close the Redis connection."""
    global _redis_client

    if _redis_client:
        try:
            await _redis_client.close()
            logger.info("Redis connection closed")
        except redis.RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")
        finally:
            _redis_client = None
