"""Gunicorn configuration for the phase report service.

Usage:
    gunicorn main:app -c deploy/gunicorn.conf.py

Batch progress and the retained report handles live in the worker process,
so the service runs with a single async worker; one event loop handles
many concurrent record-store reads.
"""

import os

# ─── Server socket ──────────────────────────────────────────────

bind = os.getenv("BIND", "0.0.0.0:5000")
backlog = 2048  # Pending connection queue

# ─── Worker processes ───────────────────────────────────────────

workers = 1
worker_class = "uvicorn.workers.UvicornWorker"

# ─── Timeouts ───────────────────────────────────────────────────
#
# Single-student exports: a few seconds per phase plus cohort ranking.
# SSE progress streams: open for the whole batch run.

timeout = 300           # Kill worker after 300s of no response
graceful_timeout = 60   # Allow in-flight tasks of a cancelled batch to finish
keepalive = 120         # Keep-alive for SSE long connections

# ─── Logging ────────────────────────────────────────────────────

accesslog = "-"                     # stdout
errorlog = "-"                      # stderr
loglevel = os.getenv("LOG_LEVEL", "info")
access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" %(D)sμs'
)

# ─── Process naming ─────────────────────────────────────────────

proc_name = "phase-report-service"

# ─── Server hooks ───────────────────────────────────────────────


def on_starting(server):
    """Called just before the master process is initialized."""
    server.log.info(
        "Starting phase report service — workers=%d, timeout=%ds, bind=%s",
        workers,
        timeout,
        bind,
    )


def worker_exit(server, worker):
    """Called when a worker has been killed or exited."""
    server.log.info("Worker exit (pid: %s)", worker.pid)
