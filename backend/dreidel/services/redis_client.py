import redis

from dreidel.core.config import get_settings


def get_redis_client() -> redis.Redis | None:
    settings = get_settings()
    if not settings.redis_url:
        return None
    try:
        return redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=0.5,
        )
    except (redis.RedisError, ValueError):
        return None
