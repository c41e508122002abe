import logging

from any_llm import AnyLLM

from django_site_rag.conf import get_setting

logger = logging.getLogger(__name__)


class LLMService:
    """Light wrapper around any-llm"""

    def __init__(self, *, client: AnyLLM, model: str):
        self.client = client
        self.model = model

    @classmethod
    def create(
        cls, *, provider: str, model: str, timeout: float | None = None, **kwargs
    ) -> "LLMService":
        """Create a service with its own provider client.

        ``timeout`` is handed to the provider client so every outbound call
        made through this service carries a deadline.
        """
        if timeout is None:
            timeout = get_setting("PROVIDER_TIMEOUT")
        client = AnyLLM.create(provider=provider, timeout=timeout, **kwargs)
        return cls(client=client, model=model)

    @property
    def service_id(self) -> str:
        return f"{self.__class__.__name__}:{self.client.PROVIDER_NAME}:{self.model}"

    def completion(self, messages, **kwargs):
        return self.client.completion(model=self.model, messages=messages, **kwargs)

    def embedding(self, inputs, **kwargs):
        return self.client._embedding(model=self.model, inputs=inputs, **kwargs)
