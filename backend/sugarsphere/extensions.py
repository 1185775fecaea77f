# Overview: Flask extension instances for database, migrations, rate limiting and live push.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO

db = SQLAlchemy()
migrate = Migrate()
# Per client IP; the /api-wide limit comes from RATELIMIT_APPLICATION
limiter = Limiter(key_func=get_remote_address)
socketio = SocketIO()
