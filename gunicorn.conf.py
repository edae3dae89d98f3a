"""Gunicorn configuration for FastAPI/ASGI runtime.

Start with: gunicorn -c gunicorn.conf.py cargo_manifest.main:app
"""

import os

# Ensure ASGI worker is used even when started as `gunicorn cargo_manifest.main:app`.
worker_class = "uvicorn.workers.UvicornWorker"

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# Conservative defaults for small instances.
workers = int(os.getenv("WEB_CONCURRENCY", "1"))
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
