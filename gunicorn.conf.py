"""
Gunicorn configuration for FlatShare.

Usage:
    gunicorn app.main:app -c gunicorn.conf.py

Environment:
    PORT              listen port (default 8000)
    WEB_CONCURRENCY   worker count (default CPU cores * 2 + 1; 1 on SQLite)
    LOG_LEVEL         gunicorn log level (default info)
"""

import multiprocessing
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# SQLite allows one writer at a time; more workers only queue on its file lock.
_default_workers = (
    1
    if os.getenv("DATABASE_URL", "").startswith("sqlite")
    else multiprocessing.cpu_count() * 2 + 1
)
workers = int(os.getenv("WEB_CONCURRENCY", str(_default_workers)))

# Use Uvicorn's ASGI worker for FastAPI
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 30
graceful_timeout = 20
keepalive = 5

# Logging to stdout/stderr
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info")
