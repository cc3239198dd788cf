import json
from dataclasses import dataclass
from typing import Any, List

from hiscores.errors import ValidationFailure

MAX_NAME_LEN = 8


@dataclass(frozen=True)
class SubmittedResult:
    name: str
    rotations: List[Any]
    n_rotations: int

    def stored_name(self, max_len: int = MAX_NAME_LEN) -> str:
        return self.name.strip()[:max_len]

    def serialized_rotations(self) -> str:
        return json.dumps(self.rotations, separators=(',', ':'))


def parse_submission(payload: Any) -> SubmittedResult:
    """Build a `SubmittedResult` from an inbound `hiscore for <board>` payload.

    Raises `ValidationFailure` for anything not shaped like
    `{"name": str, "rotations": list, "nRotations": int}`.
    """
    if not isinstance(payload, dict):
        raise ValidationFailure(f"payload must be an object, got {type(payload).__name__}")
    name = payload.get('name')
    rotations = payload.get('rotations')
    n_rotations = payload.get('nRotations')
    if not isinstance(name, str) or not name.strip():
        raise ValidationFailure('name is required')
    if not isinstance(rotations, list):
        raise ValidationFailure('rotations must be a list')
    # bool is an int subclass; true/false is not a move count
    if isinstance(n_rotations, bool) or not isinstance(n_rotations, int):
        raise ValidationFailure('nRotations must be an integer')
    return SubmittedResult(name=name, rotations=rotations, n_rotations=n_rotations)


def validate_result(result: SubmittedResult, board) -> None:
    """Check that the rotations really solve the board.

    Replaying the moves on the server is what keeps forged results out of
    the hiscores.
    """
    if result.n_rotations != len(result.rotations):
        raise ValidationFailure(
            f"nRotations={result.n_rotations} does not match {len(result.rotations)} rotations"
        )
    try:
        solved = board.is_solved_by(result.rotations)
    except Exception as exc:
        raise ValidationFailure(f"rotations could not be replayed: {exc}") from exc
    if not solved:
        raise ValidationFailure('rotations do not solve the board')
