import os
import sys
import pytest

# Ensure the backend root (containing the `reportguard` packages) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from reportguard import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REPORT_PEPPER = 'test-pepper'
    REPORT_BAN_THRESHOLD = 3
    ENABLE_RATE_LIMIT = False


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_runtime_state():
    from reportguard.services import roster
    from reportguard.services.ratelimit import reset_report_limiter
    from reportguard import socketio_events
    roster.clear()
    reset_report_limiter()
    socketio_events._sid_to_ctx.clear()
    yield


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import reportguard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def make_player(flask_app):
    """Connect a Socket.IO client and join it to a room as a player."""
    clients = []

    def _make(room_id, player_id, install_id):
        c = socketio.test_client(flask_app, namespace='/ws')
        c.emit('join_room', {'room_id': room_id, 'player_id': player_id, 'install_id': install_id}, namespace='/ws')
        c.get_received('/ws')
        clients.append(c)
        return c

    yield _make
    for c in clients:
        try:
            c.disconnect(namespace='/ws')
        except Exception:
            pass
