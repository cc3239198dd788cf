import importlib
from typing import Any, Dict, Iterable, Iterator, Optional, Protocol, Sequence, runtime_checkable


@runtime_checkable
class Board(Protocol):
    """What the hiscores core needs from a puzzle board.

    The puzzle logic lives elsewhere; a board only has to name itself and
    tell whether a sequence of rotations solves it.
    """

    name: str

    def is_solved_by(self, rotations: Sequence[Any]) -> bool:
        ...


class BoardRegistry:
    """The boards served by one server instance, keyed by name."""

    def __init__(self, boards: Iterable[Board] = ()):
        self._boards: Dict[str, Board] = {}
        for board in boards:
            self.add(board)

    def add(self, board: Board) -> None:
        if not isinstance(board, Board):
            raise TypeError(f"{board!r} does not provide name and is_solved_by")
        if not board.name:
            raise ValueError('board name must not be empty')
        if board.name in self._boards:
            raise ValueError(f"duplicate board name {board.name!r}")
        self._boards[board.name] = board

    def get(self, name: str) -> Optional[Board]:
        return self._boards.get(name)

    def __iter__(self) -> Iterator[Board]:
        return iter(self._boards.values())

    def __len__(self) -> int:
        return len(self._boards)

    def __contains__(self, name: object) -> bool:
        return name in self._boards


def load_boards(factory_path: str) -> BoardRegistry:
    """Load boards from a "module:callable" path, e.g. "puzzles.boards:all_boards"."""
    if not factory_path:
        return BoardRegistry()
    module_name, _, attr = factory_path.partition(':')
    if not attr:
        raise ValueError(f"board factory must look like 'module:callable', got {factory_path!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    return BoardRegistry(factory())
