"""
WSGI config for the Findaly marketplace.
gunicorn.conf.py points its wsgi_app at `application` below.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "findaly_project.settings")

application = get_wsgi_application()
