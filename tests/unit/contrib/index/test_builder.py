import pytest

from django_site_rag.contrib.index.builder import ChunkBuilder
from django_site_rag.contrib.index.chunking import SentenceChunkTransformer
from django_site_rag.contrib.index.schema import (
    CrawledPage,
    KnowledgeRecord,
    SearchResult,
    SourceChannel,
)


@pytest.fixture
def builder():
    return ChunkBuilder(SentenceChunkTransformer(max_chars=40))


class TestChunkBuilder:
    def test_crawled_page_defaults(self, builder):
        page = CrawledPage(url="https://www.example.com/rates", markdown="Rates start low.")

        (record,) = builder.build(page)

        assert record == KnowledgeRecord(
            id="https://www.example.com/rates-chunk0",
            url="https://www.example.com/rates",
            content="Rates start low.",
            source=SourceChannel.CRAWL,
            title="Untitled page",
            summary="Content from Untitled page",
        )

    def test_crawled_page_description_is_summary(self, builder):
        page = CrawledPage(
            url="https://www.example.com/rates",
            title="Rates",
            markdown="Rates start low.",
            description="Current personal loan rates",
        )

        (record,) = builder.build(page)

        assert record.title == "Rates"
        assert record.summary == "Current personal loan rates"

    def test_search_result_carries_structured_fields(self, builder):
        result = SearchResult(
            url="https://www.example.com/blog/budgeting",
            title="Budgeting basics",
            text="Track every expense. Review your budget monthly.",
            summary="How to start a budget",
            section_heading="Getting started",
            date="2024-03-01",
            tags=("budget", "guides"),
            source_type="blog",
            author="Finance team",
        )

        records = builder.build(result)

        assert [r.content for r in records] == [
            "Track every expense.",
            "Review your budget monthly.",
        ]
        assert [r.id for r in records] == [
            "https://www.example.com/blog/budgeting-chunk0",
            "https://www.example.com/blog/budgeting-chunk1",
        ]
        for record in records:
            assert record.source == SourceChannel.SEARCH
            assert record.summary == "How to start a budget"
            assert record.section_heading == "Getting started"
            assert record.date == "2024-03-01"
            assert record.tags == ["budget", "guides"]
            assert record.source_type == "blog"
            assert record.author == "Finance team"

    def test_text_is_normalized_before_chunking(self, builder):
        page = CrawledPage(
            url="https://www.example.com/a", markdown="  Apply\r\n online   today.  "
        )

        (record,) = builder.build(page)

        assert record.content == "Apply online today."

    def test_empty_text_builds_nothing(self, builder):
        assert builder.build(CrawledPage(url="https://www.example.com/a")) == []

    def test_ids_are_stable_across_builds(self, builder):
        page = CrawledPage(
            url="https://www.example.com/a",
            markdown="First sentence here. Second sentence here. Third one.",
        )

        assert [r.id for r in builder.build(page)] == [
            r.id for r in builder.build(page)
        ]

    def test_store_metadata(self, builder):
        page = CrawledPage(url="https://www.example.com/a", title="A", markdown="Hi.")

        (record,) = builder.build(page)

        assert record.store_metadata() == {
            "url": "https://www.example.com/a",
            "title": "A",
            "content": "Hi.",
            "summary": "Content from A",
            "source": "firecrawl",
        }

    def test_add_embedding(self, builder):
        page = CrawledPage(url="https://www.example.com/a", markdown="Hi.")

        (record,) = builder.build(page)
        embedded = record.add_embedding([0.1, 0.2, 0.3])

        assert embedded.vector == [0.1, 0.2, 0.3]
        assert embedded.id == record.id
        assert embedded.content == record.content

    def test_long_page_builds_ordered_records(self):
        markdown = " ".join(
            f"Detail {i} of the personal loan product is described here." for i in range(60)
        )
        page = CrawledPage(url="https://www.example.com/loans", markdown=markdown)
        assert len(markdown) >= 3000

        records = ChunkBuilder(SentenceChunkTransformer(max_chars=1200)).build(page)

        assert len(records) >= 3
        assert [r.id for r in records] == [
            f"https://www.example.com/loans-chunk{n}" for n in range(len(records))
        ]
        assert all(len(r.content) <= 1200 for r in records)
        assert " ".join(r.content for r in records) == markdown
