from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from redis import Redis
from rq import Queue
from flask import current_app

RQ_KEYS = {'job_timeout', 'timeout', 'at_front', 'depends_on', 'result_ttl', 'ttl', 'meta', 'description'}


class RQWrapper:
    def __init__(self):
        self.redis = None
        self.queue = None

    def init_app(self, app):
        url = app.config.get("REDIS_URL")
        if not url:
            # no Redis configured: jobs run inline in the request
            self.redis = None
            self.queue = None
            return
        try:
            self.redis = Redis.from_url(url)
            self.queue = Queue("default", connection=self.redis)
        except Exception:
            app.logger.exception('Redis/RQ init failed, falling back to sync execution')
            self.redis = None
            self.queue = None

    def _run_inline(self, args, kwargs):
        func = args[0] if args else None
        func_args = args[1:] if len(args) > 1 else ()
        safe_kwargs = {k: v for k, v in kwargs.items() if k not in RQ_KEYS}
        if not func:
            return None
        try:
            return func(*func_args, **safe_kwargs)
        except Exception:
            current_app.logger.exception('Synchronous job execution failed')
        return None

    def enqueue(self, *args, **kwargs):
        # Prefer RQ when available, otherwise call the job synchronously.
        if not self.queue:
            return self._run_inline(args, kwargs)
        try:
            return self.queue.enqueue(*args, **kwargs)
        except Exception:
            current_app.logger.exception('RQ enqueue failed, falling back to sync execution')
            return self._run_inline(args, kwargs)


class VaultClients:
    """Adapter instances built once per app from its config.

    Services never construct their own clients; route handlers and jobs pull
    them from here (``get_clients()``) and pass them down explicitly.
    """

    def __init__(self, storage=None, classifier=None, whatsapp=None, mailer=None):
        self.storage = storage
        self.classifier = classifier
        self.whatsapp = whatsapp
        self.mailer = mailer

    @classmethod
    def from_config(cls, config, overrides=None):
        from .services.storage import build_storage
        from .services.classifier import DocumentClassifier
        from .services.whatsapp import WhatsAppClient
        from .services.mail import Mailer

        overrides = overrides or {}
        return cls(
            storage=overrides.get('storage') or build_storage(config),
            classifier=overrides.get('classifier') or DocumentClassifier.from_config(config),
            whatsapp=overrides.get('whatsapp') or WhatsAppClient.from_config(config),
            mailer=overrides.get('mailer') or Mailer.from_config(config),
        )


def get_clients() -> VaultClients:
    return current_app.extensions['vault_clients']


db = SQLAlchemy()
login_manager = LoginManager()
rq = RQWrapper()
