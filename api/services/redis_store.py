# SPDX-License-Identifier: Apache-2.0

"""
Redis-backed persistent store.

Uses the standard redis-py client. When Redis is unreachable at startup
the store stays constructed but unavailable: reads fall back to defaults
and writes report failure, so the repository keeps running in memory.
"""

import logging
import os
from typing import Optional

import redis

from services.store import PersistentStore

logger = logging.getLogger(__name__)


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class RedisStore(PersistentStore):
    """Persistent store keeping one JSON blob per table in Redis."""
    
    backend_name = "redis"
    
    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None, **kwargs):
        """
        Initialize the Redis store.
        
        Args:
            redis_url: Redis connection URL (redis://host:port/db)
            client: Pre-built client, mainly for tests
            **kwargs: PersistentStore options (key_prefix, max_retries, retry_delay)
        """
        super().__init__(**kwargs)
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        
        if client is not None:
            self.client = client
            return
        
        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info(f"Redis store initialized successfully at {self.redis_url}")
        except Exception as e:
            logger.error(f"Failed to initialize Redis store: {str(e)}")
            self.client = None
    
    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")
    
    def _require_client(self) -> redis.Redis:
        if self.client is None:
            raise RedisConnectionError("Redis client not available")
        return self.client
    
    def is_available(self) -> bool:
        """Check if Redis answers a ping."""
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis health check failed: {str(e)}")
            return False
    
    def _read(self, key: str) -> Optional[str]:
        value = self._require_client().get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value
    
    def _write(self, key: str, data: str) -> None:
        if not self._require_client().set(key, data):
            raise RedisConnectionError(f"Redis SET returned no result for {key}")
    
    def _remove(self, key: str) -> None:
        self._require_client().delete(key)
