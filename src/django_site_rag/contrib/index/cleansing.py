"""
Content cleansing for scraped pages.

Scraped markdown carries navigation menus, image references, link noise and
site boilerplate. Two strategies remove it:

- ``RegexContentCleanser`` applies a fixed sequence of deterministic
  transforms and never calls out to a provider.
- ``LLMContentCleanser`` asks a chat model to rewrite the page, keeping every
  domain fact intact. It resolves any provider failure to the deterministic
  result.

Cleansing is the most expensive step of ingestion (one completion per page),
so it runs once per page, before chunking.
"""

import logging
import re
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from django_site_rag.llm.prompt import Prompt

if TYPE_CHECKING:
    from django_site_rag.llm import LLMService

logger = logging.getLogger(__name__)


CLEANSING_INSTRUCTION = Prompt(
    """You are a content cleansing assistant for {organisation}. Your job is to clean up scraped web content while PRESERVING all expertise and organisation-specific information.

CLEANING RULES:
1. REMOVE navigation elements, menus, headers and footers
2. REMOVE image references, alt texts and file paths (e.g. "![Icon](path/to/image.svg)")
3. REMOVE redundant links and URL references
4. REMOVE formatting artifacts such as broken markdown syntax
5. REMOVE generic website boilerplate

PRESERVATION RULES (CRITICAL):
6. KEEP all product details, features, figures, rates and benefits
7. KEEP all eligibility, regulatory, legal and compliance information
8. KEEP all customer-facing information, FAQs and support content
9. KEEP the organisation's language, brand voice and messaging
10. PRESERVE the natural flow and readability
11. MAINTAIN factual accuracy - never change or add information

Return ONLY the cleaned content, no explanations or meta-commentary.""",
    organisation="the organisation that published this website",
)

CLEANSING_REQUEST = Prompt("Please clean this content:\n\n{content}")


@runtime_checkable
class ContentCleanser(Protocol):
    """Turns raw scraped text into clean text. Implementations never raise."""

    calls_provider: bool

    def cleanse(self, raw_text: str) -> str: ...


class RegexContentCleanser(ContentCleanser):
    """Deterministic markdown noise removal."""

    calls_provider = False

    IMAGE_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
    # A line made only of links, optionally separated by bullets or pipes
    NAVIGATION_LINE_RE = re.compile(
        r"^[ \t]*(?:[-*+|•][ \t]*)*(?:\[[^\]\n]*\]\([^)\n]*\)[ \t]*(?:[-*+|•][ \t]*)*)+$",
        re.MULTILINE,
    )
    LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
    RULE_RE = re.compile(r"[-=]{3,}")
    WHITESPACE_RE = re.compile(r"\s+")

    def cleanse(self, raw_text: str) -> str:
        if not raw_text:
            return ""
        text = self.IMAGE_RE.sub("", raw_text)
        text = self.NAVIGATION_LINE_RE.sub("", text)
        text = self.LINK_RE.sub(r"\1", text)
        text = self.RULE_RE.sub("", text)
        return self.WHITESPACE_RE.sub(" ", text).strip()


class LLMContentCleanser(ContentCleanser):
    """Cleanses content with a chat model, falling back to a deterministic
    cleanser when the provider fails or returns nothing."""

    calls_provider = True

    def __init__(
        self,
        llm_service: "LLMService",
        *,
        fallback: ContentCleanser | None = None,
        instruction: Prompt = CLEANSING_INSTRUCTION,
        organisation: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ):
        self.llm_service = llm_service
        self.fallback = fallback or RegexContentCleanser()
        if organisation:
            instruction = instruction.with_tokens(organisation=organisation)
        self.instruction = instruction
        self.max_tokens = max_tokens
        self.temperature = temperature

    def cleanse(self, raw_text: str) -> str:
        if not raw_text or not raw_text.strip():
            return ""

        try:
            response = self.llm_service.completion(
                [
                    {"role": "system", "content": str(self.instruction)},
                    {
                        "role": "user",
                        "content": CLEANSING_REQUEST.render(content=raw_text),
                    },
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            cleaned = (response.choices[0].message.content or "").strip()
        except Exception:
            logger.exception("Content cleansing failed, using fallback cleanser")
            return self.fallback.cleanse(raw_text)

        if not cleaned:
            logger.warning("Content cleansing returned no content, using fallback")
            return self.fallback.cleanse(raw_text)

        logger.info(f"Cleansed content: {len(raw_text)} → {len(cleaned)} chars")
        return cleaned


def cleanser_for(llm_service: "LLMService | None", **kwargs) -> ContentCleanser:
    """Pick the cleansing strategy for the available provider. Keyword
    arguments configure the LLM strategy."""
    if llm_service is None:
        logger.warning("No cleansing provider configured, using regex cleanser")
        return RegexContentCleanser()
    return LLMContentCleanser(llm_service, **kwargs)
