import logging
import threading
import time

from flask import Flask, jsonify

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    app = Flask(__name__)

    @app.route('/', methods=['GET'])
    def alive():
        return 'Bot Alive'

    @app.route('/ping', methods=['GET'])
    def ping():
        return jsonify({'ok': True, 'ts': int(time.time() * 1000)})

    return app


def start_health_server(port: int, host: str = '0.0.0.0') -> threading.Thread:
    """Serve the keep-alive endpoints from a daemon thread."""
    app = create_app()
    thread = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'use_reloader': False},
        name='health-server',
        daemon=True,
    )
    thread.start()
    logger.info(f"Keep-alive server on :{port}")
    return thread
