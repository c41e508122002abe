from django.apps import AppConfig


class ChatConfig(AppConfig):
    name = "django_site_rag.contrib.chat"
    label = "site_rag_chat"
    verbose_name = "Django Site RAG Chat Completions"
