from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "django_site_rag"
    label = "django_site_rag"
    verbose_name = "Django Site RAG"
