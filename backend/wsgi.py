# backend/wsgi.py
from sugarsphere import create_app
from sugarsphere.extensions import socketio

app = create_app()

if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=app.config["APP_ENV"] == "development")
