"""
Gunicorn config. Use with: gunicorn -c gunicorn.conf.py app:app

Binds both the localhost port and the LAN port by default. The when_ready hook
checks the database once in the master process before workers take traffic.
"""
import os

_default_bind = [
    f"127.0.0.1:{os.environ.get('PORT_LOCALHOST', '3001')}",
    f"0.0.0.0:{os.environ.get('PORT_LAN', '3002')}",
]
bind = [b.strip() for b in os.environ["GUNICORN_BIND"].split(",")] if os.environ.get("GUNICORN_BIND") else _default_bind
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
worker_class = "sync"
timeout = 300  # Large exports can take minutes
preload = False  # Each worker builds its own connection pool


def when_ready(server):
    """Log whether the database is reachable before serving."""
    from app import _bootstrap
    import db

    _bootstrap()
    # Forked workers must not share the master's pooled connections.
    db.dispose_engine()
