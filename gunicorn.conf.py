"""
Gunicorn configuration file for production deployment.
Run with: gunicorn -c gunicorn.conf.py wsgi:app
"""

import multiprocessing
import os

# Server socket
bind = f"{os.getenv('HOST', '0.0.0.0')}:{os.getenv('PORT', '8080')}"
backlog = 2048

# Worker processes. Each worker owns a separate memory cache; use
# CACHE_TYPE=redis to share entries between workers.
if os.getenv("CACHE_TYPE", "memory").lower() == "memory":
    workers = int(os.getenv("WEB_CONCURRENCY", "1"))
else:
    workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"
worker_connections = 1000
max_requests = 0  # Recycling a worker would drop its memory cache
timeout = 120
graceful_timeout = 30
keepalive = 5

# Process naming
proc_name = "gleamproxy"

# Logging
accesslog = os.getenv("ACCESS_LOG", "-")  # '-' means stdout
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'
errorlog = os.getenv("ERROR_LOG", "-")  # '-' means stderr
loglevel = os.getenv("LOG_LEVEL", "info").lower()
capture_output = True

# Server mechanics
daemon = False
pidfile = None


def when_ready(server):
    """Called just after the master process is initialized."""
    server.log.info("Server is ready. Spawning workers")


def post_fork(server, worker):
    """Called just after a worker has been forked."""
    server.log.info(f"Worker spawned (pid: {worker.pid})")


def on_exit(server):
    """Called just before exiting."""
    server.log.info("Shutting down Gunicorn server")
