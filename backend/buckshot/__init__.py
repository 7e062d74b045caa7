from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS', '*')
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from buckshot.main import main
    flask_app.register_blueprint(main)

    # One set of game services per app, so test apps never share rooms
    from buckshot.services.game import build_services
    flask_app.extensions['buckshot'] = build_services(flask_app, socketio)

    from buckshot.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    return flask_app
