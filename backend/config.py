import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    REDIS_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/0'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Browser origins allowed to open Socket.IO connections (comma separated)
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # "module:callable" returning the boards served by this instance
    HISCORE_BOARDS_FACTORY = os.environ.get('HISCORE_BOARDS_FACTORY', '')
    # Number of entries pushed to clients
    HISCORES_WINDOW_SIZE = int(os.environ.get('HISCORES_WINDOW_SIZE', '7'))
    # Number of entries kept per board; must not be smaller than the window
    HISCORES_RETAINED_SIZE = int(os.environ.get('HISCORES_RETAINED_SIZE', '100'))
    HISCORES_MAX_NAME_LEN = int(os.environ.get('HISCORES_MAX_NAME_LEN', '8'))
    # Writes kept while Redis is down, replayed on reconnect
    HISCORES_OFFLINE_QUEUE_SIZE = int(os.environ.get('HISCORES_OFFLINE_QUEUE_SIZE', '1000'))
    # Redis availability check interval (sec). 0 disables.
    STORE_WATCH_INTERVAL_SEC = float(os.environ.get('STORE_WATCH_INTERVAL_SEC', '2'))
