"""
Django management command to ingest web content into KnowledgeIndexes.

Crawls each index's sources, cleanses and chunks the pages, embeds the
records and upserts them into the index namespace.
"""

import logging
import time

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from django_site_rag.contrib.index.base import KnowledgeIndex, registry

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Ingest content into all registered KnowledgeIndex instances"

    def add_arguments(self, parser):
        parser.add_argument(
            "index_names",
            nargs="*",
            help="Specific index slugs to ingest (if not specified, ingests all)",
        )
        parser.add_argument(
            "--replace",
            action="store_true",
            help="Clear each namespace before writing, instead of merging by id",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be ingested without actually ingesting",
        )
        parser.add_argument(
            "--skip-health-check",
            action="store_true",
            help="Do not check the embedding and storage providers first",
        )
        parser.add_argument(
            "--verify-query",
            help="Run this query against each index after ingesting",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Enable verbose output",
        )

    def handle(self, *args, **options):
        index_names = options.get("index_names", [])
        dry_run = options["dry_run"]
        verbose = options["verbose"]

        if verbose:
            logging.getLogger("django_site_rag").setLevel(logging.DEBUG)

        start_time = time.time()
        self.stdout.write(self.style.SUCCESS("Starting knowledge ingestion..."))
        self.stdout.write(f"Started at: {timezone.now()}")

        available_indexes = registry.list()
        if index_names:
            invalid_names = [
                name for name in index_names if name not in available_indexes
            ]
            if invalid_names:
                raise CommandError(f"Unknown index names: {invalid_names}")
            indexes_to_ingest = index_names
        else:
            indexes_to_ingest = list(available_indexes)

        if not indexes_to_ingest:
            self.stdout.write(self.style.WARNING("No indexes registered"))
            return

        self.stdout.write(f"Found {len(indexes_to_ingest)} index(es) to ingest:")
        for name in indexes_to_ingest:
            self.stdout.write(f"  - {name}")

        if dry_run:
            self.stdout.write(
                self.style.WARNING("DRY RUN: Would ingest the above indexes")
            )
            return

        success_count, failure_count = self._ingest_sequential(
            indexes_to_ingest, options
        )

        elapsed_time = time.time() - start_time
        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("=== Ingestion Summary ==="))
        self.stdout.write(f"Total indexes processed: {len(indexes_to_ingest)}")
        self.stdout.write(f"Successful ingestions: {success_count}")

        if failure_count > 0:
            self.stdout.write(self.style.ERROR(f"Failed ingestions: {failure_count}"))

        self.stdout.write(f"Total time: {elapsed_time:.2f} seconds")
        self.stdout.write(f"Completed at: {timezone.now()}")

        if failure_count > 0:
            raise CommandError(f"Failed to ingest {failure_count} index(es)")

    def _ingest_sequential(
        self, indexes_to_ingest: list[str], options: dict
    ) -> tuple[int, int]:
        success_count = 0
        failure_count = 0

        for i, index_name in enumerate(indexes_to_ingest, 1):
            self.stdout.write(
                f"\n[{i}/{len(indexes_to_ingest)}] Ingesting index: {index_name}"
            )
            try:
                start_time = time.time()
                index = registry.get(index_name)()

                if not options["skip_health_check"] and not self._check_health(index):
                    failure_count += 1
                    continue

                report = index.build(replace=options["replace"])
                elapsed = time.time() - start_time

                self.stdout.write(f"  Items seen: {report.items_seen}")
                self.stdout.write(f"  Items processed: {report.items_processed}")
                for skipped in report.skipped:
                    self.stdout.write(f"  Skipped {skipped.url}: {skipped.reason}")
                if report.items_failed:
                    self.stdout.write(
                        self.style.WARNING(f"  Items failed: {report.items_failed}")
                    )
                self.stdout.write(f"  Records built: {report.records_built}")
                self.stdout.write(
                    f"  Records stored: {report.upsert.accepted} "
                    f"(dropped without embedding: {report.upsert.dropped})"
                )

                if not report.success:
                    self.stdout.write(
                        self.style.ERROR(f"  ✗ No records stored for '{index_name}'")
                    )
                    failure_count += 1
                    continue

                if options["verify_query"]:
                    self._verify(index, options["verify_query"])

                self.stdout.write(
                    self.style.SUCCESS(
                        f"  ✓ Successfully ingested '{index_name}' in {elapsed:.2f}s"
                    )
                )
                success_count += 1

            except Exception as e:
                self.stdout.write(
                    self.style.ERROR(f"  ✗ Failed to ingest '{index_name}': {e}")
                )
                if options["verbose"]:
                    import traceback

                    self.stdout.write(traceback.format_exc())
                failure_count += 1

        return success_count, failure_count

    def _check_health(self, index: KnowledgeIndex) -> bool:
        status = index.health_check()
        failed = [name for name, healthy in status.items() if not healthy]
        if failed:
            self.stdout.write(
                self.style.ERROR(f"  ✗ Health check failed for: {', '.join(failed)}")
            )
            return False
        return True

    def _verify(self, index: KnowledgeIndex, query: str):
        matches = index.search(query, top_k=3)
        top_score = matches[0].score if matches else 0.0
        self.stdout.write(
            f"  Verification query returned {len(matches)} match(es), "
            f"top score {top_score:.3f}"
        )
