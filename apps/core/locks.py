"""
Distributed lock service.
Backed by the default Django cache: django-redis in deployed environments
(SET NX EX under the hood), LocMemCache in tests.
"""
import time
import uuid
import logging
from typing import Optional

from django.core.cache import cache

logger = logging.getLogger(__name__)


class DistributedLockService:
    """Mutual exclusion across processes sharing the same cache."""
    KEY_PREFIX = 'lock'

    @classmethod
    def _get_key(cls, resource: str) -> str:
        return f'{cls.KEY_PREFIX}:{resource}'

    @classmethod
    def acquire_lock(
        cls,
        resource: str,
        lock_id: str = None,
        ttl_seconds: int = 10,
        retry_times: int = 3,
        retry_delay: float = 0.1
    ) -> Optional[str]:
        """
        Acquire a lock on a resource.
        Returns the lock id on success, None when the lock is held elsewhere
        or the cache is unreachable.
        """
        if lock_id is None:
            lock_id = f'{uuid.uuid4()}'

        key = cls._get_key(resource)

        for attempt in range(retry_times):
            try:
                # cache.add only writes when the key is absent
                if cache.add(key, lock_id, timeout=ttl_seconds):
                    logger.debug(f"Lock acquired for {resource} with id {lock_id}")
                    return lock_id
            except Exception as e:
                logger.error(f"Failed to acquire lock for {resource}: {e}")
                return None

            if attempt < retry_times - 1:
                time.sleep(retry_delay)

        logger.warning(f"Failed to acquire lock for {resource} after {retry_times} attempts")
        return None

    @classmethod
    def release_lock(cls, resource: str, lock_id: str) -> bool:
        """Release a lock. Only the holder may release it."""
        key = cls._get_key(resource)

        try:
            current_lock_id = cache.get(key)

            if current_lock_id is None:
                return True

            if current_lock_id == lock_id:
                cache.delete(key)
                logger.debug(f"Lock released for {resource}")
                return True

            logger.warning(f"Cannot release lock for {resource}: lock_id mismatch")
            return False
        except Exception as e:
            logger.error(f"Failed to release lock for {resource}: {e}")
            return False


class distributed_lock:
    """
    Context manager for distributed lock. Yields None when the lock
    could not be acquired.

    Usage:
        with distributed_lock('returns:request:42', ttl=30) as lock_id:
            if lock_id:
                # do work
                pass
    """

    def __init__(self, resource: str, ttl: int = 10, retry_times: int = 3, retry_delay: float = 0.1):
        self.resource = resource
        self.ttl = ttl
        self.retry_times = retry_times
        self.retry_delay = retry_delay
        self.lock_id = None

    def __enter__(self):
        self.lock_id = DistributedLockService.acquire_lock(
            self.resource,
            ttl_seconds=self.ttl,
            retry_times=self.retry_times,
            retry_delay=self.retry_delay
        )
        return self.lock_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.lock_id:
            DistributedLockService.release_lock(self.resource, self.lock_id)
        return False
