import os
import sys
import pytest
import fakeredis

# Ensure the backend root (containing the `hiscores` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from hiscores import create_app, socketio
from hiscores.services.store import RedisHiscoreStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    REDIS_URL = 'redis://localhost:6379/15'
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = []
    SOCKETIO_NAMESPACE = '/'
    HISCORE_BOARDS_FACTORY = ''
    HISCORES_WINDOW_SIZE = 7
    HISCORES_RETAINED_SIZE = 20
    HISCORES_MAX_NAME_LEN = 8
    HISCORES_OFFLINE_QUEUE_SIZE = 10
    STORE_WATCH_INTERVAL_SEC = 0


class ToyBoard:
    """A dial with four positions; 'cw' and 'ccw' turn it by one step.

    Solved when the moves bring it back from `scramble` to position 0.
    """

    def __init__(self, name, scramble=1):
        self.name = name
        self.scramble = scramble

    def is_solved_by(self, rotations):
        position = self.scramble
        for move in rotations:
            if move == 'cw':
                position += 1
            elif move == 'ccw':
                position -= 1
            else:
                raise ValueError(f"unknown move {move!r}")
        return position % 4 == 0


def solving_moves(board, extra_turns=0):
    """Shortest solution of a ToyBoard, padded with full turns."""
    return ['cw'] * ((4 - board.scramble) % 4) + ['cw', 'cw', 'cw', 'cw'] * extra_turns


class RecordingChannel:
    def __init__(self):
        self.emitted = []
        self.broadcasted = []

    def emit(self, event, payload):
        self.emitted.append((event, payload))

    def broadcast(self, event, payload):
        self.broadcasted.append((event, payload))


@pytest.fixture()
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture()
def redis_client(redis_server):
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture()
def store(redis_client):
    return RedisHiscoreStore(redis_client, retained_size=20, offline_queue_size=10)


@pytest.fixture()
def board():
    return ToyBoard('b1', scramble=1)


@pytest.fixture()
def boards(board):
    return [board, ToyBoard('b2', scramble=2)]


@pytest.fixture()
def channel():
    return RecordingChannel()


@pytest.fixture()
def flask_app(store, boards):
    application = create_app(TestConfig, store=store, boards=boards)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/')
    except Exception:
        pass
