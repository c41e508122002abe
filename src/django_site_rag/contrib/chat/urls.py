from django.urls import path

from django_site_rag.contrib.index import registry

from .views import ChatCompletionsView


def chat_urls() -> list:
    """
    Generate chat completion URL patterns for all registered indexes.

    Returns:
        List of URL patterns

    Example:
        # In your main urls.py
        from django_site_rag.contrib.chat.urls import chat_urls

        urlpatterns = [
            # ... your other URLs
            path("rag/", include(chat_urls())),
        ]
    """
    urlpatterns = []

    for slug in registry.list():
        urlpatterns.append(
            path(
                f"{slug}/chat/completions",
                ChatCompletionsView.as_view(index_slug=slug),
                name=f"chat_completions_{slug}",
            )
        )

    return urlpatterns
