"""Keeps one client's view of a board's hiscores in sync with the store.

A `HiscoresSession` exists per (connection, board). It holds no ranked data
itself: every push re-reads the top window from the store, and all writes go
through the store's atomic conditional insert.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from hiscores.errors import EncodingOverflow, StoreError, ValidationFailure
from .ranking import decode_rank, encode_rank, now_millis
from .validation import MAX_NAME_LEN, parse_submission, validate_result

logger = logging.getLogger(__name__)

WINDOW_SIZE = 7


def submission_event(board_name: str) -> str:
    return f"hiscore for {board_name}"


def request_event(board_name: str) -> str:
    return f"request of hiscores for {board_name}"


def hiscores_event(board_name: str) -> str:
    return f"hiscores for {board_name}"


def read_window(store, board_name: str, window_size: int = WINDOW_SIZE) -> List[Dict[str, Any]]:
    """Best `window_size` entries of a board, ascending by rank."""
    rows = store.top_range(board_name, 0, window_size - 1)
    return [{'name': name, 'nRotations': decode_rank(rank)} for name, rank in rows]


class Channel(Protocol):
    def emit(self, event: str, payload: Any) -> None:
        """Send to the client this session is bound to."""

    def broadcast(self, event: str, payload: Any) -> None:
        """Send to every other client subscribed to the board."""


def _run_inline(func, *args):
    func(*args)


class HiscoresSession:
    def __init__(self, board, store, channel: Channel,
                 clock: Callable[[], int] = now_millis,
                 spawn: Optional[Callable[..., Any]] = None,
                 window_size: int = WINDOW_SIZE,
                 max_name_len: int = MAX_NAME_LEN):
        self.board = board
        self.store = store
        self.channel = channel
        self.clock = clock
        self.spawn = spawn or _run_inline
        self.window_size = window_size
        self.max_name_len = max_name_len
        self.closed = False
        self._listening = False

    def start(self) -> None:
        """Subscribe to store reconnects and send the current hiscores.

        A client that is still initializing may miss this push; one that is
        reconnecting (e.g. after a network drop) gets the latest window.
        """
        self.store.on_reconnect(self.on_store_reconnected)
        self._listening = True
        self.push_top()

    # ---- Inbound events ----

    def on_result_submitted(self, payload: Any) -> bool:
        """Handle `hiscore for <board>`. Returns True if a write was scheduled."""
        try:
            result = parse_submission(payload)
            validate_result(result, self.board)
        except ValidationFailure as exc:
            logger.info(f"[hiscore-invalid] board={self.board.name} reason={exc}")
            return False

        try:
            rank = encode_rank(result.n_rotations, self.clock())
        except EncodingOverflow as exc:
            logger.error(f"[rank-overflow] board={self.board.name} {exc}")
            return False
        except ValueError as exc:
            # Clock reading before the epoch
            logger.error(f"[rank-invalid] board={self.board.name} {exc}")
            return False

        self.spawn(self._insert_and_publish, rank, result.stored_name(self.max_name_len),
                   result.serialized_rotations())
        return True

    def on_top_requested(self) -> None:
        self.push_top()

    def on_store_reconnected(self) -> None:
        # Writes queued during the outage may have changed the window
        self.spawn(self.push_top)

    def on_disconnected(self) -> None:
        self.closed = True
        if self._listening:
            self._listening = False
            self.store.remove_reconnect_listener(self.on_store_reconnected)

    # ---- Store access ----

    def _insert_and_publish(self, rank: float, name: str, serialized_rotations: str) -> None:
        try:
            stored = self.store.conditional_insert(self.board.name, rank, name, serialized_rotations)
            logger.info(f"[hiscore-write] board={self.board.name} name={name} rank={rank!r} stored={stored}")
        except StoreError as exc:
            # The client never hears about it; at worst its window is stale
            logger.warning(f"[hiscore-write-failed] board={self.board.name} name={name} "
                           f"queued={getattr(exc, 'queued', False)} error={exc}")
        self.push_top(broadcast=True)

    def fetch_top(self) -> List[Dict[str, Any]]:
        return read_window(self.store, self.board.name, self.window_size)

    def push_top(self, broadcast: bool = False) -> Optional[List[Dict[str, Any]]]:
        """Send the window to this client and, with `broadcast`, to all others.

        Once the session is closed nothing is sent to its own client; other
        clients still get a broadcast of a submission that was accepted
        before the disconnect.
        """
        if self.closed and not broadcast:
            return None
        try:
            hiscores = self.fetch_top()
        except StoreError as exc:
            logger.warning(f"[hiscores-read-failed] board={self.board.name} error={exc}")
            return None
        event = hiscores_event(self.board.name)
        if self.closed:
            # Disconnected while the store call was in flight
            logger.debug(f"[push-discarded] board={self.board.name}")
        else:
            self.channel.emit(event, hiscores)
        if broadcast:
            self.channel.broadcast(event, hiscores)
        return hiscores
