import multiprocessing
import os

# Gunicorn configuration for the TaskDesk API
# Run with: gunicorn -c gunicorn_conf.py

wsgi_app = "taskdesk.main:app"
worker_class = "uvicorn.workers.UvicornWorker"

bind = os.getenv("BIND", "0.0.0.0:8000")

# (2 x num_cores) + 1 unless WEB_CONCURRENCY says otherwise
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))

timeout = 120
keepalive = 5

# Access log to stdout; the app configures its own loggers in the lifespan
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

proc_name = "taskdesk_api"
reload = False
