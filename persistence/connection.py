"""
Adaptive Auth Redis Connection

Single shared client for the profile store, profile locks and step-up
sessions.

Environment:
    REDIS_URL         Full connection URL (takes precedence)
    REDIS_HOST        Hostname (default: localhost)
    REDIS_PORT        Port (default: 6379)
    REDIS_DB          Database index (default: 0)
    REDIS_PASSWORD    Required when RISK_ENGINE_ENV=production
"""

import logging
import os
from functools import lru_cache

import redis
from redis.exceptions import AuthenticationError, RedisError


logger = logging.getLogger(__name__)

POOL_MAX_CONNECTIONS = 50
SOCKET_TIMEOUT_SECONDS = 5.0


def _build_pool() -> redis.ConnectionPool:
    url = os.getenv("REDIS_URL")
    if url:
        return redis.ConnectionPool.from_url(
            url,
            decode_responses=True,
            max_connections=POOL_MAX_CONNECTIONS,
            socket_timeout=SOCKET_TIMEOUT_SECONDS,
        )

    password = os.getenv("REDIS_PASSWORD") or None
    if password is None:
        if os.getenv("RISK_ENGINE_ENV", "production") == "production":
            logger.critical("REDIS_PASSWORD environment variable is not set.")
            raise ValueError("REDIS_PASSWORD is required in production.")
        logger.warning("Connecting to Redis without a password")

    return redis.ConnectionPool(
        host=os.getenv("REDIS_HOST", "localhost"),
        port=int(os.getenv("REDIS_PORT", 6379)),
        db=int(os.getenv("REDIS_DB", 0)),
        password=password,
        decode_responses=True,
        max_connections=POOL_MAX_CONNECTIONS,
        socket_timeout=SOCKET_TIMEOUT_SECONDS,
    )


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """
    Process-wide Redis client, pinged once on creation.

    Raises:
        ValueError: production deployment without REDIS_PASSWORD.
        RedisError: the server is unreachable or rejected the credentials.
    """
    pool = _build_pool()
    client = redis.Redis(connection_pool=pool)
    try:
        client.ping()
    except AuthenticationError:
        logger.critical("Redis authentication failed. Check REDIS_PASSWORD.")
        raise
    except RedisError as e:
        logger.critical(f"Could not connect to Redis: {e}")
        raise

    kwargs = pool.connection_kwargs
    logger.info(
        f"Connected to Redis risk store at "
        f"{kwargs.get('host', 'localhost')}:{kwargs.get('port', 6379)}/{kwargs.get('db', 0)}"
    )
    return client
