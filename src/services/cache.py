import time
import logging
from collections import OrderedDict
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SimpleCache:
    """
    TTL 캐시

    만료된 항목은 미리 삭제하지 않고 조회 시 없는 것으로 취급하며,
    다음 set()에서 덮어쓴다. max_entries를 넘으면 가장 오래된 항목부터 버린다.
    """

    def __init__(self, ttl_seconds=60, clock: Callable[[], float] = time.time, max_entries: Optional[int] = None):
        self.cache = OrderedDict()
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_entries = max_entries if max_entries and max_entries > 0 else None

    def get(self, key) -> Optional[Any]:
        if key in self.cache:
            result, timestamp = self.cache[key]
            if self.clock() - timestamp < self.ttl_seconds:
                logger.debug(f"[Cache Hit] Key: {key}")
                return result
            logger.debug(f"[Cache Miss] Key: {key} (Expired)")
        else:
            logger.debug(f"[Cache Miss] Key: {key}")
        return None

    def set(self, key, value):
        self.cache.pop(key, None)
        self.cache[key] = (value, self.clock())
        logger.debug(f"[Cache Set] Key: {key}")
        if self.max_entries is not None:
            while len(self.cache) > self.max_entries:
                evicted, _ = self.cache.popitem(last=False)
                logger.debug(f"[Cache Evict] Key: {evicted}")

    def delete(self, key):
        if key in self.cache:
            del self.cache[key]
            logger.debug(f"[Cache Delete] Key: {key}")

    def clear(self):
        self.cache.clear()

    def __len__(self):
        return len(self.cache)
