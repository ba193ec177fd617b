import os

# wsgi.py patches with gevent before the app is imported.
wsgi_app = "wsgi:app"
worker_class = "gevent"
workers = int(os.getenv("WEB_CONCURRENCY", "4"))
worker_connections = 1000
timeout = 120
bind = "0.0.0.0:{}".format(os.getenv("PORT", "10000"))

loglevel = "info"
accesslog = "-"
errorlog = "-"
