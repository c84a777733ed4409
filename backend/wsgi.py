# gunicorn --worker-class eventlet -w 1 --chdir backend wsgi:app
# Rooms live in process memory, so run exactly one worker.
from thekitchen.server import create_app

app, socketio = create_app()
