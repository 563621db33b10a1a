from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'wholesale.core'

    def ready(self):
        """Import signals when app is ready"""
        import wholesale.core.model_cache  # noqa: F401  # Cache invalidation signals
