"""Redis-backed ranked store for hiscores.

Each board owns a sorted set `hiscores:<board>` (member: player name,
score: rank) and a hash `hiscores:<board>:rotations` with the moves behind
each entry. Inserts go through a Lua script so that concurrent submissions
for one board are applied atomically and the best rank per name wins,
whatever order they arrive in.
"""

import logging
import os
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Tuple

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from hiscores.errors import StoreUnavailable, TransactionFailure

logger = logging.getLogger(__name__)

_SCRIPT_PATH = os.path.join(os.path.dirname(__file__), 'insert_hiscore.lua')

with open(_SCRIPT_PATH, encoding='utf-8') as _script_file:
    INSERT_HISCORE_SCRIPT = _script_file.read()

ReconnectListener = Callable[[], None]


class RedisHiscoreStore:
    def __init__(self, client: 'redis.Redis', retained_size: int = 100,
                 offline_queue_size: int = 1000, key_prefix: str = 'hiscores',
                 min_retained_size: int = 7):
        if retained_size < min_retained_size:
            raise ValueError(
                f"retained_size={retained_size} must be at least the window size {min_retained_size}"
            )
        self.client = client
        self.retained_size = retained_size
        self.key_prefix = key_prefix
        self._insert_script = client.register_script(INSERT_HISCORE_SCRIPT)
        self._listeners: List[ReconnectListener] = []
        self._pending: Deque[Tuple[str, float, str, str]] = deque(maxlen=offline_queue_size)
        self._lock = threading.Lock()
        self.available = True

    @classmethod
    def from_url(cls, url: str, **kwargs) -> 'RedisHiscoreStore':
        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    def ranks_key(self, board_name: str) -> str:
        return f"{self.key_prefix}:{board_name}"

    def rotations_key(self, board_name: str) -> str:
        return f"{self.key_prefix}:{board_name}:rotations"

    # ---- Transactions ----

    def conditional_insert(self, board_name: str, rank: float, name: str,
                           serialized_rotations: str) -> bool:
        """Store the entry unless `name` already has an equal or better rank.

        Returns True when the entry was stored. Raises `StoreUnavailable`
        (with the write queued for replay) when Redis cannot be reached.
        """
        try:
            return self._run_insert(board_name, rank, name, serialized_rotations)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self.available = False
            queued = self._enqueue((board_name, rank, name, serialized_rotations))
            raise StoreUnavailable(f"insert for board {board_name!r} failed: {exc}", queued=queued) from exc

    def _run_insert(self, board_name: str, rank: float, name: str, serialized_rotations: str) -> bool:
        try:
            stored = self._insert_script(
                keys=[self.ranks_key(board_name), self.rotations_key(board_name)],
                args=[repr(float(rank)), name, serialized_rotations, self.retained_size],
            )
        except (RedisConnectionError, RedisTimeoutError):
            raise
        except RedisError as exc:
            raise TransactionFailure(f"insert script failed for board {board_name!r}: {exc}") from exc
        return bool(int(stored))

    def _enqueue(self, write: Tuple[str, float, str, str]) -> bool:
        with self._lock:
            if self._pending.maxlen == 0:
                return False
            if len(self._pending) == self._pending.maxlen:
                dropped = self._pending[0]
                logger.warning(f"[hiscore-queue-full] board={dropped[0]} name={dropped[2]} dropped oldest write")
            self._pending.append(write)
            size = len(self._pending)
        logger.info(f"[hiscore-queued] board={write[0]} name={write[2]} pending={size}")
        return True

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def top_range(self, board_name: str, start: int, stop: int) -> List[Tuple[str, float]]:
        """Names and ranks between `start` and `stop` (inclusive), best first."""
        try:
            rows = self.client.zrange(self.ranks_key(board_name), start, stop, withscores=True)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            self.available = False
            raise StoreUnavailable(f"read for board {board_name!r} failed: {exc}") from exc
        except RedisError as exc:
            raise TransactionFailure(f"read for board {board_name!r} failed: {exc}") from exc
        return [(_as_text(name), float(score)) for name, score in rows]

    # ---- Reconnect notification ----

    def on_reconnect(self, callback: ReconnectListener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def remove_reconnect_listener(self, callback: ReconnectListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def check_connection(self) -> bool:
        """Ping Redis and fire reconnect listeners when it comes back.

        Queued writes are replayed before listeners run, so the windows they
        push already contain them.
        """
        try:
            self.client.ping()
        except RedisError as exc:
            if self.available:
                logger.warning(f"[store-unavailable] {exc}")
            self.available = False
            return False
        if not self.available:
            self.available = True
            logger.info(f"[store-reconnected] pending={self.pending_writes} listeners={self.listener_count}")
            self._replay_pending()
            self._notify_reconnect()
        return True

    def _replay_pending(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    return
                write = self._pending.popleft()
            try:
                self._run_insert(*write)
            except (RedisConnectionError, RedisTimeoutError) as exc:
                # Lost the connection again; keep the write for the next round
                with self._lock:
                    self._pending.appendleft(write)
                self.available = False
                logger.warning(f"[hiscore-replay-interrupted] board={write[0]} {exc}")
                return
            except TransactionFailure as exc:
                logger.error(f"[hiscore-replay-failed] board={write[0]} name={write[2]} {exc}")

    def _notify_reconnect(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:
                logger.exception('[store-reconnect-listener-failed]')

    def watch(self, interval: float, sleep: Callable[[float], None] = time.sleep,
              should_stop: Callable[[], bool] = lambda: False) -> None:
        """Check the connection every `interval` seconds until `should_stop()`."""
        while not should_stop():
            self.check_connection()
            sleep(interval)


def _as_text(value) -> str:
    return value.decode('utf-8') if isinstance(value, bytes) else value
