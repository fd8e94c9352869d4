from django.apps import AppConfig


class IdentityConfig(AppConfig):
    name = 'apps.identity'
    label = 'identity'
    verbose_name = 'Identity & Access'

    def ready(self):
        from . import signals  # noqa: F401
