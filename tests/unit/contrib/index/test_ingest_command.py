from io import StringIO
from unittest import mock

import pytest
from django.core.management import CommandError, call_command

from django_site_rag.contrib.index.schema import (
    IngestionReport,
    RetrievalMatch,
    SkippedItem,
    UpsertResult,
)
from testapp.indexes import FaqIndex


@pytest.fixture
def mock_build():
    with mock.patch.object(FaqIndex, "build") as build:
        build.return_value = IngestionReport(
            items_seen=3,
            items_processed=2,
            records_built=4,
            skipped=[SkippedItem(url="https://www.example.com/old", reason="bad status")],
            upsert=UpsertResult(accepted=4),
        )
        yield build


@pytest.fixture
def healthy():
    with mock.patch.object(
        FaqIndex,
        "health_check",
        return_value={"embedding": True, "storage": True},
    ) as health_check:
        yield health_check


def run_command(*args):
    out = StringIO()
    call_command("ingest_knowledge", *args, stdout=out)
    return out.getvalue()


def test_ingests_registered_index(mock_build, healthy):
    output = run_command("faq")

    mock_build.assert_called_once_with(replace=False)
    healthy.assert_called_once()
    assert "Ingesting index: faq" in output
    assert "Skipped https://www.example.com/old: bad status" in output
    assert "Records stored: 4" in output
    assert "Successfully ingested 'faq'" in output


def test_replace_flag(mock_build, healthy):
    run_command("faq", "--replace")

    mock_build.assert_called_once_with(replace=True)


def test_dry_run(mock_build, healthy):
    output = run_command("--dry-run")

    assert "DRY RUN" in output
    assert "  - faq" in output
    mock_build.assert_not_called()


def test_unknown_index(mock_build):
    with pytest.raises(CommandError, match="Unknown index names"):
        run_command("missing")


def test_failed_health_check(mock_build):
    with mock.patch.object(
        FaqIndex, "health_check", return_value={"embedding": False, "storage": True}
    ):
        with pytest.raises(CommandError, match="Failed to ingest 1"):
            run_command("faq")

    mock_build.assert_not_called()


def test_skip_health_check(mock_build, healthy):
    run_command("faq", "--skip-health-check")

    healthy.assert_not_called()
    mock_build.assert_called_once()


def test_nothing_stored_fails(mock_build, healthy):
    mock_build.return_value = IngestionReport(items_seen=1, items_failed=1)

    with pytest.raises(CommandError):
        run_command("faq")


def test_build_error_fails(mock_build, healthy):
    mock_build.side_effect = RuntimeError("crawl failed")

    with pytest.raises(CommandError):
        run_command("faq")


def test_verify_query(mock_build, healthy):
    with mock.patch.object(
        FaqIndex,
        "search",
        return_value=[RetrievalMatch(id="r0", score=0.8123, metadata={})],
    ) as search:
        output = run_command("faq", "--verify-query", "annual fee")

    search.assert_called_once_with("annual fee", top_k=3)
    assert "returned 1 match(es), top score 0.812" in output


def test_end_to_end_with_mock_providers():
    """Ingest the FAQ entries through the real pipeline."""
    index = FaqIndex()
    index.storage_provider.clear()
    index.embedding_transformer.llm_service.client._embedding.side_effect = (
        lambda model, inputs, **kwargs: mock.Mock(
            data=[
                mock.Mock(index=i, embedding=[1.0, float(i), 0.0])
                for i in range(len(inputs) if isinstance(inputs, list) else 1)
            ]
        )
    )
    try:
        run_command("faq")
    finally:
        index.embedding_transformer.llm_service.client._embedding.side_effect = None

    assert len(index.storage_provider.records) == 2
    assert set(index.storage_provider.records) == {
        "https://www.example.com/support/faq-chunk0",
        "https://www.example.com/contact-chunk0",
    }
    index.storage_provider.clear()
