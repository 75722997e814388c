from typing import Optional

from .interface import DistributedLockInterface
from .redis_lock import RedisLock

_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """Process-wide lock provider. Redis is the only backend."""
    global _lock_provider

    if _lock_provider is None:
        _lock_provider = RedisLock()

    return _lock_provider
