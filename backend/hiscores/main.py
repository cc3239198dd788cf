from flask import Blueprint, current_app, jsonify
from hiscores.errors import StoreError
from hiscores.services.synchronizer import read_window

main = Blueprint('main', __name__)


def read_hiscores(app, board_name):
    """Top window of `board_name`, or None if the board is not served here."""
    hiscores = app.extensions['hiscores']
    if board_name not in hiscores.boards:
        return None
    return read_window(hiscores.store, board_name, hiscores.window_size)


@main.route('/health')
def health():
    store = current_app.extensions['hiscores'].store
    return jsonify({'status': 'ok', 'store': bool(store.check_connection())})


@main.route('/api/hiscores/<string:board_name>')
def get_hiscores(board_name):
    try:
        hiscores = read_hiscores(current_app, board_name)
    except StoreError as exc:
        current_app.logger.warning(f"[hiscores-read-failed] board={board_name} error={exc}")
        return jsonify({'error': 'Hiscores are temporarily unavailable'}), 503
    if hiscores is None:
        return jsonify({'error': 'Board not found'}), 404
    return jsonify(hiscores)
