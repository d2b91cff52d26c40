from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from reportguard.main import main
    flask_app.register_blueprint(main)

    from reportguard.api.reports import reports
    flask_app.register_blueprint(reports, url_prefix='/api/report')

    # Handlers bind to the module-level socketio instance
    from reportguard.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('ledger-purge')
    def ledger_purge_command():
        """Deletes expired ledger and report rows."""
        from reportguard.kv import KVStore
        with flask_app.app_context():
            removed = KVStore().purge_expired()
            print(f'Purged {removed} expired entries.')

    flask_app.cli.add_command(ledger_purge_command)

    return flask_app
