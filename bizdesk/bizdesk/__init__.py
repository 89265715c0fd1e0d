# Celery instance is defined in bizdesk/celery.py
# It creates celery_app object and points it to Django settings
from .celery import celery_app

# 'from bizdesk import *', only exports celery_app
__all__ = ("celery_app",)

""" When you run Celery workers, "celery -A bizdesk worker -l info"
    The -A bizdesk means:
    Import bizdesk/__init__.py →
    which exposes celery_app →  now Celery knows what to run. """
