from typing import Any, List, Optional, Protocol, Tuple

from redis import Redis

from .config import Settings


class QueueStore(Protocol):
    """
    The subset of Redis commands the dispatcher and orchestrator rely on.

    redis.Redis satisfies it, and so does fakeredis.FakeRedis in tests.
    Both must be created with decode_responses=True.
    """

    def rpush(self, name: str, *values: str) -> int:
        ...

    def blpop(self, keys, timeout: Optional[float] = 0) -> Optional[Tuple[str, str]]:
        ...

    def llen(self, name: str) -> int:
        ...

    def delete(self, *names: str) -> int:
        ...

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str) -> Any:
        ...

    def setex(self, name: str, time: int, value: str) -> Any:
        ...

    def scan(self, cursor: int = 0, match: Optional[str] = None, count: Optional[int] = None) -> Tuple[int, List[str]]:
        ...

    def mget(self, keys) -> List[Optional[str]]:
        ...

    def pipeline(self) -> Any:
        ...

    def ping(self) -> bool:
        ...


def create_redis(settings: Settings) -> Redis:
    """
    Open the Redis connection described by the settings.

    Connection errors are not caught here: without the store no
    background job operation is possible.
    """
    client = Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_database,
        password=settings.redis_password or None,
        socket_timeout=settings.redis_socket_timeout,
        decode_responses=True,
    )
    client.ping()
    return client
