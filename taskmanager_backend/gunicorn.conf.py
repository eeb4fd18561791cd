# Gunicorn configuration for the Task Manager backend
# Usage: gunicorn -c taskmanager_backend/gunicorn.conf.py taskmanager_backend.start_server:app

import os

# Server socket
port = os.environ.get('PORT', '5000')
bind = f"0.0.0.0:{port}"
backlog = 2048

# Worker processes
workers = int(os.environ.get('WEB_CONCURRENCY', '2'))
worker_class = 'sync'
worker_connections = 1000
max_requests = 1000  # Restart workers periodically
max_requests_jitter = 50

# Timeouts
timeout = 60
keepalive = 5
graceful_timeout = 30

preload_app = True

# Logging
accesslog = '-'
errorlog = '-'
loglevel = os.environ.get('LOG_LEVEL', 'info').lower()
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = 'taskmanager-backend'

# Security
limit_request_line = 4094
limit_request_fields = 100
limit_request_field_size = 8190


def when_ready(server):
    server.log.info("Task Manager backend is ready. Listening on %s", server.address)


def worker_int(worker):
    worker.log.info("Worker received INT or QUIT signal")


def post_fork(server, worker):
    server.log.info("Worker spawned (pid: %s)", worker.pid)
