from flask import current_app, request
from flask_socketio import join_room
from hiscores import socketio
from hiscores.services.synchronizer import HiscoresSession, request_event, submission_event
from typing import Any, Dict


class SocketChannel:
    """Delivers a session's pushes through Socket.IO.

    Uses the server-level `socketio.emit`, so pushes also work from
    background tasks that run outside the request context.
    """

    def __init__(self, sid: str, room: str, namespace: str):
        self.sid = sid
        self.room = room
        self.namespace = namespace

    def emit(self, event: str, payload: Any) -> None:
        socketio.emit(event, payload, to=self.sid, namespace=self.namespace)

    def broadcast(self, event: str, payload: Any) -> None:
        socketio.emit(event, payload, to=self.room, skip_sid=self.sid, namespace=self.namespace)


def board_room(board_name: str) -> str:
    return f"board:{board_name}"


_sid_to_sessions: Dict[str, Dict[str, HiscoresSession]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    hiscores = current_app.extensions['hiscores']
    namespace = current_app.config.get('SOCKETIO_NAMESPACE', '/')
    sid = _get_sid()
    sessions = {}
    for board in hiscores.boards:
        room = board_room(board.name)
        join_room(room)
        sessions[board.name] = hiscores.session(board, SocketChannel(sid, room, namespace))
    _sid_to_sessions[sid] = sessions
    for session in sessions.values():
        session.start()


def handle_disconnect(reason=None):
    sessions = _sid_to_sessions.pop(_get_sid(), None)
    if not sessions:
        return
    for session in sessions.values():
        session.on_disconnected()


def _session_for(board_name: str):
    return _sid_to_sessions.get(_get_sid(), {}).get(board_name)


def _make_submission_handler(board_name: str):
    def handle_hiscore(data=None):
        session = _session_for(board_name)
        if session is not None:
            session.on_result_submitted(data)
    return handle_hiscore


def _make_request_handler(board_name: str):
    def handle_request_of_hiscores(data=None):
        session = _session_for(board_name)
        if session is not None:
            session.on_top_requested()
    return handle_request_of_hiscores


def register_socketio_handlers(boards, namespace: str = '/') -> None:
    """Register Socket.IO event handlers.

    Connection lifecycle plus, for every board, the submission and request
    events whose names carry the board name.
    """
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    for board in boards:
        socketio.on_event(submission_event(board.name), _make_submission_handler(board.name), namespace=namespace)
        socketio.on_event(request_event(board.name), _make_request_handler(board.name), namespace=namespace)
