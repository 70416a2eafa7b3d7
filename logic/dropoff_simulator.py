"""
Synthetic drop-off funnel for a call flow.

There is no call telemetry behind these numbers: a fixed volume of calls
enters the first step and each step on the happy path loses a random share
of what reaches it. Steps that wait for the caller or branch lose more than
steps that only speak. The last step visited absorbs whatever is left, so
every report accounts for the full starting volume.
"""
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from config.flow_definition import CallFlowGraph
from config.settings import SimulationSettings
from logic.traversal import TerminalPolicy, is_terminal_step, terminal_policy_for, walk


logger = logging.getLogger(__name__)

DEFAULT_INITIAL_VOLUME = 1000
PASSIVE_DROP_RANGE = (0.02, 0.07)
INTERACTIVE_DROP_RANGE = (0.05, 0.25)


def drop_rate_percent(calls_dropped: int, calls_reached: int) -> float:
    if calls_reached <= 0:
        return 0.0
    return round(calls_dropped / calls_reached * 100, 1)


@dataclass(frozen=True)
class StepResult:
    step_key: str
    step_description: str
    calls_reached: int
    calls_dropped: int
    drop_rate_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stepKey": self.step_key,
            "stepDescription": self.step_description,
            "callsReached": self.calls_reached,
            "callsDropped": self.calls_dropped,
            "dropRate": self.drop_rate_percent,
        }


@dataclass(frozen=True)
class DropoffReport:
    campaign_label: str
    initial_volume: int
    step_results: Tuple[StepResult, ...]

    @property
    def total_dropped(self) -> int:
        return sum(result.calls_dropped for result in self.step_results)

    def get(self, step_key: str) -> Optional[StepResult]:
        for result in self.step_results:
            if result.step_key == step_key:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "campaignName": self.campaign_label,
            "totalInitialCalls": self.initial_volume,
            "stepsAnalysis": [result.to_dict() for result in self.step_results],
        }


class DropoffSimulator:
    """
    Walks a flow's happy path and synthesizes attrition at each step.

    Pass a seeded ``random.Random`` to pin the output.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        initial_volume: int = DEFAULT_INITIAL_VOLUME,
        passive_drop_range: Tuple[float, float] = PASSIVE_DROP_RANGE,
        interactive_drop_range: Tuple[float, float] = INTERACTIVE_DROP_RANGE,
        terminal_policy: TerminalPolicy = is_terminal_step,
    ):
        if initial_volume <= 0:
            raise ValueError("initial_volume must be positive")
        self.rng = rng or random.Random()
        self.initial_volume = initial_volume
        self.passive_drop_range = passive_drop_range
        self.interactive_drop_range = interactive_drop_range
        self.terminal_policy = terminal_policy

    @classmethod
    def from_settings(cls, settings: SimulationSettings, rng: Optional[random.Random] = None) -> "DropoffSimulator":
        if rng is None:
            rng = random.Random(settings.seed)
        return cls(
            rng=rng,
            initial_volume=settings.initial_volume,
            passive_drop_range=settings.passive_drop_range,
            interactive_drop_range=settings.interactive_drop_range,
            terminal_policy=terminal_policy_for(settings.exit_marker),
        )

    def _draw_drops(self, reached: int, low: float, high: float) -> int:
        # Whole calls only; keep the reported rate inside [low, high] when the
        # volume allows a whole count there.
        dropped = math.floor(reached * self.rng.uniform(low, high))
        fewest = math.ceil(reached * low)
        most = math.floor(reached * high)
        if fewest > most:
            return dropped
        return max(fewest, min(most, dropped))

    def simulate(self, graph: CallFlowGraph, campaign_label: str = "") -> DropoffReport:
        """
        Run one simulation.

        Raises ``EmptyGraphError`` for a flow without steps and
        ``DataIntegrityError`` for an unknown default exit or as soon as the
        walk reaches a dangling reference; no partial report is returned in that case.
        """
        remaining = self.initial_volume
        results = []
        for visit in walk(graph, terminal_policy=self.terminal_policy):
            step = visit.step
            reached = remaining
            if visit.final:
                dropped = remaining
            else:
                low, high = self.interactive_drop_range if step.is_interactive else self.passive_drop_range
                dropped = min(remaining, self._draw_drops(reached, low, high))
            remaining -= dropped
            results.append(StepResult(
                step_key=step.key,
                step_description=step.description,
                calls_reached=reached,
                calls_dropped=dropped,
                drop_rate_percent=drop_rate_percent(dropped, reached),
            ))
            if remaining <= 0:
                break

        report = DropoffReport(
            campaign_label=campaign_label,
            initial_volume=self.initial_volume,
            step_results=tuple(results),
        )
        logger.debug(
            "Simulated flow '%s' for '%s': %d steps, %d/%d calls accounted",
            graph.name, campaign_label, len(results), report.total_dropped, self.initial_volume,
        )
        return report


def simulate(graph: CallFlowGraph, campaign_label: str = "", rng: Optional[random.Random] = None) -> DropoffReport:
    return DropoffSimulator(rng=rng).simulate(graph, campaign_label)
