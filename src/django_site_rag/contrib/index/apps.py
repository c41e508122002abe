from django.apps import AppConfig


class IndexConfig(AppConfig):
    name = "django_site_rag.contrib.index"
    label = "site_rag_index"
    verbose_name = "Django Site RAG Knowledge Index"
