# gunicorn.conf.py
import multiprocessing, os

# App factory: settings, Swiss Ephemeris path and the timezonefinder dataset load per worker
wsgi_app = "app.main:create_app()"
bind = f"0.0.0.0:{os.getenv('PORT','5000')}"

# A design chart runs ~70 ephemeris calls of pure CPU, so scale with cores, not threads.
workers = int(os.getenv("WEB_CONCURRENCY", max(2, multiprocessing.cpu_count())))
threads = 1
worker_class = "sync"

# Loading timezonefinder's boundary data on first request takes a few seconds.
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = 20
keepalive = 2
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# chart queries are GET-only; keep the query string (date/time/lat/lng) in the log line
access_log_format = (
    '%(h)s "%(m)s %(U)s?%(q)s" %(s)s %(b)sB %(M)sms '
    'req_id:%({X-Request-ID}i)s ua:"%(a)s"'
)
