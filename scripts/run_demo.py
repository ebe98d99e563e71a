#!/usr/bin/env python3
"""
Demo Runner Script

Sends four sample requests through the dispatcher and reports which
candidate answered each, with token usage and estimated cost:

1. Simple task with default settings
2. Complex task restricted to a preferred model
3. Cost-constrained task (max cost, cost-ascending fallback)
4. Capability-focused task (minimum ratings, capability-descending fallback)

A fifth request repeats the first one to show an exact cache hit.

Usage:
    python scripts/run_demo.py              # Use providers with configured API keys
    python scripts/run_demo.py --offline    # Use local echo providers, no network
    python scripts/run_demo.py --verbose    # Show dispatcher logs
"""

import argparse
import asyncio
import logging
import sys
import zlib
from dataclasses import dataclass
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from llm_router.config import Settings, configure_logging, get_settings
from llm_router.dispatcher import Dispatcher, DispatchResult, create_dispatcher
from llm_router.errors import AllCandidatesFailedError, RouterError
from llm_router.metrics import MetricsReporter
from llm_router.providers.base import CapabilityProvider, CompletionResponse, TokenUsage
from llm_router.registry import DEFAULT_PROFILES
from llm_router.schemas import RequestOptions


@dataclass
class DemoCase:
    """One scripted demo request."""

    title: str
    text: str
    options: RequestOptions | None = None


DEMO_CASES: list[DemoCase] = [
    DemoCase(
        title="Simple task with default settings",
        text="What is the capital of France?",
    ),
    DemoCase(
        title="Complex task with specific model",
        text=(
            "Analyze the ethical implications of artificial intelligence in "
            "healthcare, considering both benefits and potential risks."
        ),
        options=RequestOptions(preferred_model="gpt-4o-mini"),
    ),
    DemoCase(
        title="Cost-constrained task",
        text="Write a short poem about programming.",
        options=RequestOptions(max_cost=0.001, fallback_strategy="cost-ascending"),
    ),
    DemoCase(
        title="Capability-focused task",
        text="Create a comprehensive guide on implementing a microservices architecture.",
        options=RequestOptions(
            min_capability={"reasoning": 8, "knowledge": 8},
            fallback_strategy="capability-descending",
        ),
    ),
    DemoCase(
        title="Repeated simple task (cache)",
        text="What is the capital of France?",
    ),
]


class EchoProvider(CapabilityProvider):
    """
    Offline provider that answers with a canned echo of the request.

    Embeddings are hashed bag-of-words vectors, so identical texts are
    identical vectors and texts sharing most words score close to 1.0.
    """

    EMBEDDING_DIMENSIONS = 64

    def __init__(self, name: str, model: str):
        self.name = name
        self.model = model

    async def generate_completion(self, text, options=None):
        await asyncio.sleep(0.01)
        reply = f"[{self.name}:{self.model}] echo: {text[:60]}"
        return CompletionResponse(
            text=reply,
            model=self.model,
            provider=self.name,
            usage=TokenUsage(
                input_tokens=self.estimate_units(text),
                output_tokens=self.estimate_units(reply),
            ),
        )

    async def generate_embedding(self, text):
        counts = [0.0] * self.EMBEDDING_DIMENSIONS
        for word in text.lower().split():
            word = word.strip(".,;:!?\"'()")
            if word:
                counts[zlib.crc32(word.encode("utf-8")) % self.EMBEDDING_DIMENSIONS] += 1
        return counts


def build_dispatcher(offline: bool, settings: Settings) -> Dispatcher:
    """Build a dispatcher with real providers, or echo providers when offline."""
    if not offline:
        return create_dispatcher(settings)

    dispatcher = Dispatcher(settings=settings, embedding_candidate=DEFAULT_PROFILES[0].key)
    dispatcher.register_many(
        (EchoProvider(profile.provider, profile.model), profile)
        for profile in DEFAULT_PROFILES
    )
    return dispatcher


def print_result(index: int, case: DemoCase, result: DispatchResult) -> None:
    """Print one demo result."""
    response = result.response
    print(f"\nTest {index}: {case.title}")
    print(f"  Request:   {case.text[:70]}{'...' if len(case.text) > 70 else ''}")
    print(f"  Response:  {response.text[:70]}{'...' if len(response.text) > 70 else ''}")
    print(f"  Model:     {response.provider}:{response.model}")
    print(f"  Source:    {result.source.value}")
    if result.tier is not None:
        print(f"  Tier:      {result.tier.value}")
    print(f"  Attempts:  {result.attempts}")
    print(
        f"  Usage:     {response.usage.input_tokens} in / "
        f"{response.usage.output_tokens} out"
    )
    if result.estimated_cost_usd is not None:
        print(f"  Est. cost: ${result.estimated_cost_usd:.6f}")
    print(f"  Latency:   {result.latency_ms:.1f}ms")


async def run_demo(offline: bool) -> int:
    """
    Run every demo case through one dispatcher.

    Returns:
        Number of cases that failed
    """
    settings = get_settings()
    if offline:
        settings = settings.model_copy(
            update={"min_request_interval_ms": 0, "retry_base_delay_ms": 100}
        )

    dispatcher = build_dispatcher(offline, settings)

    if not dispatcher.candidates:
        print("ERROR: No candidates registered. Set OPENAI_API_KEY / GROQ_API_KEY or use --offline.")
        return len(DEMO_CASES)

    print(f"\nCandidates: {', '.join(p.key for p in dispatcher.candidates)}")
    print("-" * 60)

    failures = 0
    async with dispatcher:
        for i, case in enumerate(DEMO_CASES, 1):
            try:
                result = await dispatcher.dispatch(case.text, case.options)
            except AllCandidatesFailedError as e:
                failures += 1
                print(f"\nTest {i}: {case.title}")
                print(f"  FAILED: {e}")
                continue
            except RouterError as e:
                failures += 1
                print(f"\nTest {i}: {case.title}")
                print(f"  ERROR: {type(e).__name__}: {e}")
                continue
            print_result(i, case, result)

    report = MetricsReporter().generate_report(dispatcher.cache.stats())

    print("\n" + "=" * 60)
    print("LLM ROUTER DEMO SUMMARY")
    print("=" * 60)
    print(f"  Requests:        {report.total_requests}")
    print(f"  Failed:          {report.failed_requests}")
    print(f"  Cache hits:      {report.exact_cache_hits} exact, {report.semantic_cache_hits} semantic")
    print(f"  Total est. cost: ${report.total_cost_usd:.6f}")
    print(f"  Avg latency:     {report.avg_latency_ms:.1f}ms")
    for key, stats in sorted(report.requests_by_candidate.items()):
        print(f"    {key:<32} {stats.request_count:>3} req  ${stats.total_cost_usd:.6f}")
    print("=" * 60)

    return failures


def main():
    """Main entry point for the demo runner."""

    parser = argparse.ArgumentParser(
        description="Run sample requests through the LLM Router dispatcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_demo.py              Use configured providers
  python scripts/run_demo.py --offline    Use local echo providers
  python scripts/run_demo.py -v           Show dispatcher logs
        """,
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Use local echo providers instead of real APIs",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show dispatcher logs",
    )

    args = parser.parse_args()

    settings = get_settings()
    if args.verbose:
        configure_logging(settings)
    else:
        logging.basicConfig(level=logging.ERROR)

    print("=" * 60)
    print("LLM Router Demo Runner")
    print("=" * 60)

    failures = asyncio.run(run_demo(args.offline))
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
