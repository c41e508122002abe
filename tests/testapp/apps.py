from django.apps import AppConfig


class SiteRagTestAppConfig(AppConfig):
    label = "testapp"
    name = "testapp"
    verbose_name = "Django Site RAG tests"

    def ready(self):
        from . import indexes  # noqa
