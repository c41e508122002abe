#!/usr/bin/env python

import argparse
import os
import sys
import warnings

from django.core.management import execute_from_command_line

os.environ["DJANGO_SETTINGS_MODULE"] = "testapp.settings"
sys.path.append("tests")
sys.path.append("src")


def make_parser():
    parser = argparse.ArgumentParser(
        description="Run a management command against the test app"
    )
    parser.add_argument(
        "--deprecation",
        choices=["all", "pending", "imminent", "none"],
        default="imminent",
    )
    parser.add_argument(
        "--llm",
        choices=["mock", "openai"],
        help="LLM provider for the test indexes (needs OPENAI_API_KEY for openai)",
    )
    parser.add_argument(
        "--storage",
        choices=["inmemory", "qdrant"],
        help="Storage provider for the test indexes",
    )
    return parser


def parse_args(args=None):
    return make_parser().parse_known_args(args)


def run():
    args, rest = parse_args()

    if args.deprecation == "all":
        # Show all deprecation warnings from all packages
        warnings.simplefilter("default", DeprecationWarning)
        warnings.simplefilter("default", PendingDeprecationWarning)
    elif args.deprecation == "pending":
        warnings.simplefilter("default", PendingDeprecationWarning)

    # Read by testapp.settings, so these must be set before Django starts
    if args.llm:
        os.environ["SITE_RAG_TESTAPP_LLM_PROVIDER"] = args.llm
    if args.storage:
        os.environ["SITE_RAG_TESTAPP_STORAGE_PROVIDER"] = args.storage

    argv = [sys.argv[0], *rest]

    execute_from_command_line(argv)


if __name__ == "__main__":
    run()
