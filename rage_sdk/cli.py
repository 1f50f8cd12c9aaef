"""CLI entry point for rage-sdk."""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from .config.settings import RageConfig, get_recommendations
from .interceptor import RageInterceptor
from .reliability.errors import ConfigurationError
from .retrieval.in_memory import InMemoryRetrievalClient

MOCK_ENDPOINT = "http://localhost/mock"
MOCK_API_KEY = "mock.mock.mock"

SAMPLE_DOCUMENTS = [
    {
        "text": (
            "Circuit breakers stop calls to a failing dependency once failures "
            "cross a threshold, then let a single probe through after a cool-down "
            "period to test whether the dependency has recovered."
        ),
        "score": 0.92,
        "metadata": {"source": "resilience-guide.md", "section": "Circuit breakers"},
    },
    {
        "text": (
            "Retries should use exponential backoff with jitter so that many "
            "clients recovering at once do not synchronize into a retry storm."
        ),
        "score": 0.85,
        "metadata": {"source": "resilience-guide.md", "section": "Retries"},
    },
    {
        "text": (
            "Context enrichment retrieves documents related to a user message and "
            "adds them to the conversation as a system message before the model "
            "answers."
        ),
        "score": 0.81,
        "metadata": {"source": "official-documentation.pdf", "page": 4},
    },
]


def build_config(args: argparse.Namespace) -> RageConfig:
    overrides: Dict[str, Any] = {}
    if args.mock:
        overrides.update(enabled=True, endpoint=MOCK_ENDPOINT, api_key=MOCK_API_KEY)
    if getattr(args, "endpoint", None):
        overrides["endpoint"] = args.endpoint
    if getattr(args, "api_key", None):
        overrides["api_key"] = args.api_key
    if getattr(args, "timeout_ms", None):
        overrides["timeout_ms"] = args.timeout_ms
    if getattr(args, "max_results", None):
        overrides["num_results"] = args.max_results
    if getattr(args, "min_relevance", None) is not None:
        overrides["min_relevance_score"] = args.min_relevance
    if args.debug:
        overrides.update(debug=True, log_level="debug")
    return RageConfig.from_env(environment=args.environment, **overrides)


def build_interceptor(args: argparse.Namespace) -> RageInterceptor:
    config = build_config(args)
    client = InMemoryRetrievalClient(SAMPLE_DOCUMENTS) if args.mock else None
    return RageInterceptor(config, retrieval_client=client)


def print_result(data: Dict[str, Any], fmt: str):
    if fmt == "json":
        print(json.dumps(data, indent=2, default=str))
        return

    context = data.get("context")
    print(f"Query: {data['query']}")
    print("-" * 50)
    if context:
        print(context)
    else:
        print("No context (disabled, too short, nothing relevant, or retrieval failed)")
    if fmt == "verbose":
        print("-" * 50)
        print("Metrics:")
        for key, value in data["metrics"].items():
            print(f"   {key}: {value}")


async def run_query(args: argparse.Namespace) -> int:
    interceptor = build_interceptor(args)
    try:
        if not interceptor.enabled:
            print("Enrichment is disabled; set RAGE_ENABLED=true or use --mock")
            return 1
        context = await interceptor.enrich_message(args.query)
        print_result(
            {
                "query": args.query,
                "context": context,
                "metrics": interceptor.get_performance_summary(),
            },
            args.format,
        )
        return 0
    finally:
        await interceptor.aclose()


async def run_health(args: argparse.Namespace) -> int:
    interceptor = build_interceptor(args)
    try:
        result = await interceptor.health_check()
    finally:
        await interceptor.aclose()
    print(json.dumps(result, indent=2, default=str))
    return 0 if result["status"] != "unhealthy" else 1


def show_config(args: argparse.Namespace) -> int:
    config = build_config(args)
    print(json.dumps(config.masked(), indent=2))
    recommendations = get_recommendations(config)
    if recommendations:
        print("\nRecommendations:")
        for item in recommendations:
            print(f"   [{item['category']}] {item['message']} -> {item['suggestion']}")
    return 0


def main():
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="rage-sdk context enrichment CLI")
    parser.add_argument('--environment', choices=['development', 'test', 'production'],
                        help='Environment defaults to apply')
    parser.add_argument('--mock', action='store_true', help='Use the built-in sample corpus')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    query_parser = subparsers.add_parser('query', help='Enrich a query and print the context')
    query_parser.add_argument('query', help='Query text')
    query_parser.add_argument('--format', choices=['json', 'pretty', 'verbose'], default='pretty')
    query_parser.add_argument('--timeout-ms', type=int, help='Per-attempt timeout in milliseconds')
    query_parser.add_argument('--max-results', type=int, help='Number of documents to retrieve')
    query_parser.add_argument('--min-relevance', type=float, help='Minimum relevance score (0-1)')
    query_parser.add_argument('--endpoint', help='Retrieval endpoint URL')
    query_parser.add_argument('--api-key', help='Bearer token (JWT)')

    health_parser = subparsers.add_parser('health', help='Check retrieval service health')
    health_parser.add_argument('--endpoint', help='Retrieval endpoint URL')
    health_parser.add_argument('--api-key', help='Bearer token (JWT)')

    subparsers.add_parser('config', help='Show resolved configuration')

    args = parser.parse_args()

    try:
        if args.command == 'query':
            exit_code = asyncio.run(run_query(args))
        elif args.command == 'health':
            exit_code = asyncio.run(run_health(args))
        elif args.command == 'config':
            exit_code = show_config(args)
        else:
            parser.print_help()
            exit_code = 0
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
