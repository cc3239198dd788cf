from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

# Sessions push the current hiscores from the connect handler, so the
# CONNECT packet has to reach the client first.
socketio = SocketIO(async_mode=None, always_connect=True)


class HiscoresExtension:
    """Everything a socket session or route needs: store, boards, settings."""

    def __init__(self, store, boards, window_size=7, max_name_len=8, spawn=None):
        self.store = store
        self.boards = boards
        self.window_size = window_size
        self.max_name_len = max_name_len
        self.spawn = spawn

    def session(self, board, channel):
        from hiscores.services.synchronizer import HiscoresSession
        return HiscoresSession(
            board, self.store, channel,
            spawn=self.spawn,
            window_size=self.window_size,
            max_name_len=self.max_name_len,
        )


def create_app(config_class=Config, store=None, boards=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from hiscores.boards import BoardRegistry, load_boards
    if boards is None:
        boards = load_boards(flask_app.config.get('HISCORE_BOARDS_FACTORY', ''))
    elif not isinstance(boards, BoardRegistry):
        boards = BoardRegistry(boards)
    if not len(boards):
        flask_app.logger.warning("No boards configured; set HISCORE_BOARDS_FACTORY")

    window_size = int(flask_app.config.get('HISCORES_WINDOW_SIZE', 7))
    if store is None:
        from hiscores.services.store import RedisHiscoreStore
        store = RedisHiscoreStore.from_url(
            flask_app.config['REDIS_URL'],
            retained_size=int(flask_app.config.get('HISCORES_RETAINED_SIZE', 100)),
            offline_queue_size=int(flask_app.config.get('HISCORES_OFFLINE_QUEUE_SIZE', 1000)),
            min_retained_size=window_size,
        )

    testing = flask_app.config.get('TESTING', False)
    # In tests, store writes run inline for determinism
    spawn = None if testing else socketio.start_background_task
    flask_app.extensions['hiscores'] = HiscoresExtension(
        store, boards,
        window_size=window_size,
        max_name_len=int(flask_app.config.get('HISCORES_MAX_NAME_LEN', 8)),
        spawn=spawn,
    )

    from hiscores.main import main
    flask_app.register_blueprint(main)

    # Register Socket.IO event handlers
    from hiscores.socketio_events import register_socketio_handlers
    register_socketio_handlers(boards, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    interval = float(flask_app.config.get('STORE_WATCH_INTERVAL_SEC', 0) or 0)
    if interval > 0 and not testing:
        socketio.start_background_task(store.watch, interval, socketio.sleep)
        flask_app.logger.info(f"[store-watch] interval={interval}s")

    @click.command('show-hiscores')
    @click.argument('board_name')
    def show_hiscores_command(board_name):
        """Prints the current hiscores of a board."""
        from hiscores.errors import StoreError
        from hiscores.main import read_hiscores
        try:
            hiscores = read_hiscores(flask_app, board_name)
        except StoreError as exc:
            raise click.ClickException(str(exc))
        if hiscores is None:
            raise click.ClickException(f"Unknown board {board_name!r}")
        if not hiscores:
            click.echo('No hiscores yet.')
        for position, entry in enumerate(hiscores, start=1):
            click.echo(f"{position}. {entry['name']:<8} {entry['nRotations']}")

    flask_app.cli.add_command(show_hiscores_command)

    return flask_app
