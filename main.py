import argparse
import asyncio
import json
import logging
import random
import sys
from typing import List, Optional

from config import get_settings
from config.settings import Settings
from llm.client import LLMClient
from logic.drop_analysis import DropAnalysisRequester, analyze_campaign
from logic.dropoff_simulator import DropoffReport, DropoffSimulator
from logic.errors import CallFlowError
from logic.flow_registry import FlowRegistry


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate call-flow drop-off and analyse the worst step.")
    parser.add_argument("--campaign", help="only this campaign (default: every loaded campaign)")
    parser.add_argument("--seed", type=int, help="seed for the simulated funnel")
    parser.add_argument("--analyze", action="store_true", help="ask the LLM to analyse the worst step")
    parser.add_argument("--json", action="store_true", help="print reports as JSON")
    return parser.parse_args(argv)


def format_report(report: DropoffReport) -> str:
    lines = [f"{report.campaign_label}: {report.initial_volume} simulated calls"]
    for result in report.step_results:
        lines.append(
            f"  {result.step_key:<28} reached={result.calls_reached:>5} "
            f"dropped={result.calls_dropped:>5} rate={result.drop_rate_percent:>5.1f}%"
        )
    return "\n".join(lines)


async def run(settings: Settings, args: argparse.Namespace) -> int:
    logger = logging.getLogger("app")
    registry = FlowRegistry(settings.flows_dir)
    campaigns = [args.campaign] if args.campaign else registry.get_names()
    campaigns = [name for name in campaigns if registry.master_flow(name)]
    if not campaigns:
        logger.error("No call flows found in %s", settings.flows_dir)
        return 1

    seed = args.seed if args.seed is not None else settings.simulation.seed
    simulator = DropoffSimulator.from_settings(settings.simulation, rng=random.Random(seed))
    llm_client = LLMClient(
        settings.llm,
        timeout=settings.timeouts.llm_timeout,
        max_connections=settings.concurrency.http_max_connections,
        semaphore=asyncio.Semaphore(settings.concurrency.max_parallel_llm),
    )
    requester = DropAnalysisRequester(llm_client)

    try:
        for name in campaigns:
            graph = registry.master_flow(name)
            if not args.analyze:
                try:
                    report = simulator.simulate(graph, name)
                except CallFlowError as exc:
                    logger.error("Simulation failed for campaign '%s': %s", name, exc)
                    print(f"Error: {exc}")
                    continue
                print(json.dumps(report.to_dict(), indent=2) if args.json else format_report(report))
                continue

            outcome = await analyze_campaign(graph, name, simulator, requester)
            if outcome.report:
                print(json.dumps(outcome.report.to_dict(), indent=2) if args.json else format_report(outcome.report))
            if outcome.error:
                print(f"Error: {outcome.error}")
            elif outcome.message:
                print(outcome.message)
            else:
                print(f"\nWorst step: {outcome.worst_step.step_key}\n{outcome.analysis}")
    finally:
        await llm_client.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    return asyncio.run(run(settings, args))


if __name__ == "__main__":
    sys.exit(main())
