"""Gunicorn configuration for the KitReg API."""

from __future__ import annotations

import multiprocessing
import os

from logging_config import build_logging_config
from settings import settings


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


def _worker_count() -> int:
    if workers := os.getenv("GUNICORN_WORKERS"):
        return max(1, int(workers))
    # registration traffic is bursty but light; cap the fan-out
    return max(2, min(multiprocessing.cpu_count() * 2 + 1, 8))


wsgi_app = "app:app"
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
worker_class = "uvicorn.workers.UvicornWorker"
workers = _worker_count()
timeout = _env_int("GUNICORN_TIMEOUT", 60)
graceful_timeout = _env_int("GUNICORN_GRACEFUL_TIMEOUT", 30)
keepalive = _env_int("GUNICORN_KEEPALIVE", 5)
max_requests = _env_int("GUNICORN_MAX_REQUESTS", 0)
max_requests_jitter = _env_int("GUNICORN_MAX_REQUESTS_JITTER", 0)
forwarded_allow_ips = ",".join(settings.PROXY_TRUSTED_HOSTS)
errorlog = "-"
loglevel = settings.LOG_LEVEL.lower()
accesslog = None
preload_app = True
logconfig_dict = build_logging_config(settings.LOG_LEVEL)
proc_name = os.getenv("GUNICORN_PROC_NAME", "kitreg")
