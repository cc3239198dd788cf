"""Hiscore domain services: ranking, validation, store and sync sessions.

This package contains the hiscores core that should be used by socket
handlers and HTTP routes, keeping transport concerns separated from the
ranking rules.
"""

from .ranking import decode_rank, encode_rank, now_millis
from .store import RedisHiscoreStore
from .synchronizer import HiscoresSession
from .validation import SubmittedResult, parse_submission, validate_result
