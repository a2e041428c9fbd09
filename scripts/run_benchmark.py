#!/usr/bin/env python3
"""
Routing Benchmark Script

Shows how the four routing strategies rank the configured models for a
prompt, and optionally dispatches the prompt once per strategy to compare
the models they pick.

This script:
1. Loads the configured models (MODELS_FILE or the default set)
2. Prints the ranking and reason of every strategy
3. With --dispatch, runs one completion per strategy concurrently
4. Reports latency, cost and failover per strategy, then the stats table

Usage:
    python scripts/run_benchmark.py                        # Routing decisions only
    python scripts/run_benchmark.py --prompt "Explain CRDTs"
    python scripts/run_benchmark.py --dispatch             # Also call providers
    python scripts/run_benchmark.py --test                 # Test every model first
"""

import argparse
import asyncio
import sys
import time
from pathlib import Path

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from model_gateway.config import configure_logging, get_settings
from model_gateway.errors import GatewayError
from model_gateway.gateway import CompletionResult, GatewayCore
from model_gateway.router import RoutingDecision, RoutingStrategy
from model_gateway.schemas import ChatMessage, CompletionRequest


def print_decisions(decisions: list[RoutingDecision]) -> None:
    """Print the ranking of every strategy."""
    print("\nRouting Decisions:")
    print(f"  {'Strategy':<10} {'Selected':<22} Ranking")
    print(f"  {'-'*10} {'-'*22} {'-'*30}")
    for decision in decisions:
        print(
            f"  {decision.strategy.value:<10} {decision.top:<22} "
            f"{' > '.join(decision.ranked_ids)}"
        )
        print(f"  {'':<10} reason: {decision.reason}")


async def dispatch_all(
    gateway: GatewayCore, messages: list[ChatMessage], max_tokens: int
) -> dict[str, CompletionResult | GatewayError]:
    """Run one completion per strategy concurrently."""

    async def run(strategy: RoutingStrategy):
        request = CompletionRequest(
            messages=messages, strategy=strategy.value, max_tokens=max_tokens
        )
        try:
            return await gateway.complete(request)
        except GatewayError as e:
            return e

    strategies = list(RoutingStrategy)
    outcomes = await asyncio.gather(*(run(s) for s in strategies))
    return {s.value: o for s, o in zip(strategies, outcomes)}


def print_dispatch_report(outcomes: dict, elapsed: float) -> None:
    """Print per-strategy dispatch results."""
    print("\nDispatch Results:")
    print(f"  {'Strategy':<10} {'Model':<22} {'Latency':>10} {'Cost':>12} {'Failovers':>10}")
    print(f"  {'-'*10} {'-'*22} {'-'*10} {'-'*12} {'-'*10}")
    for strategy, outcome in outcomes.items():
        if isinstance(outcome, CompletionResult):
            print(
                f"  {strategy:<10} {outcome.model_id:<22} "
                f"{outcome.latency_ms:>8.0f}ms ${outcome.cost_usd:>11.6f} "
                f"{len(outcome.failed_attempts):>10}"
            )
        else:
            print(f"  {strategy:<10} FAILED: {outcome.message}")
    print(f"\n  Total time: {elapsed:.2f}s")


def print_stats(gateway: GatewayCore) -> None:
    """Print the stats store contents."""
    print("\nModel Statistics:")
    print(f"  {'Model':<22} {'Avg ms':>8} {'OK':>4} {'Fail':>5} {'Cost':>12}")
    print(f"  {'-'*22} {'-'*8} {'-'*4} {'-'*5} {'-'*12}")
    for model_id in gateway.registry.ids():
        snap = gateway.stats.snapshot(model_id)
        avg = f"{snap.avg_latency_ms:.0f}" if snap.avg_latency_ms is not None else "-"
        print(
            f"  {model_id:<22} {avg:>8} {snap.success_count:>4} "
            f"{snap.failure_count:>5} ${snap.cumulative_cost:>11.6f}"
        )


async def run_benchmark(args: argparse.Namespace) -> int:
    settings = get_settings()
    gateway = GatewayCore.from_settings(settings)
    messages = [ChatMessage(role="user", content=args.prompt)]

    try:
        models = gateway.list_models(enabled_only=True)
        print(f"\nEnabled models: {len(models)}")
        for model in models:
            print(
                f"  {model.id:<22} provider={model.provider.value:<10} "
                f"priority={model.priority:<4} "
                f"key={'yes' if model.api_key else 'no'}"
            )

        if args.test:
            print("\nTesting models...")
            for result in await gateway.test_all():
                status = "OK  " if result.success else "FAIL"
                detail = f" ({result.error})" if result.error else ""
                print(f"  [{status}] {result.model_id:<22} {result.latency_ms:>7.0f}ms{detail}")

        try:
            print_decisions(gateway.benchmark_routing(messages))
        except GatewayError as e:
            print(f"ERROR: {e.message}")
            return 1

        if args.dispatch:
            start = time.perf_counter()
            outcomes = await dispatch_all(gateway, messages, args.max_tokens)
            print_dispatch_report(outcomes, time.perf_counter() - start)
            print_stats(gateway)
            print("\nRouting after dispatch:")
            print_decisions(gateway.benchmark_routing(messages))
    finally:
        await gateway.aclose()

    print("\n" + "=" * 60)
    return 0


def main():
    """Main entry point for the benchmark runner."""

    parser = argparse.ArgumentParser(
        description="Compare routing strategies over the configured models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_benchmark.py                      Routing decisions only
  python scripts/run_benchmark.py --dispatch           Also call providers
  python scripts/run_benchmark.py --test --dispatch    Test, then dispatch
        """,
    )

    parser.add_argument(
        "--prompt",
        default="Hello! Please introduce yourself in one sentence.",
        help="User message to route",
    )
    parser.add_argument(
        "--dispatch",
        action="store_true",
        help="Dispatch one completion per strategy (makes provider calls)",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Test every model before routing",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=64,
        help="Output token limit for dispatched completions (default: 64)",
    )

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings)

    print("=" * 60)
    print("Model Gateway Routing Benchmark")
    print("=" * 60)

    sys.exit(asyncio.run(run_benchmark(args)))


if __name__ == "__main__":
    main()
