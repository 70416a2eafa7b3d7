"""
Happy-path traversal over a call flow.

Simulations have no real caller, so the walk does not evaluate keyword
conditions. It follows each step's continue key (``next``, else the first
condition target) until it hits a step the terminal policy marks as an
exit.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from config.flow_definition import CallFlowGraph, CallFlowStep
from logic.errors import DataIntegrityError, EmptyGraphError


logger = logging.getLogger(__name__)

TerminalPolicy = Callable[[CallFlowStep, CallFlowGraph], bool]


def is_terminal_step(step: CallFlowStep, graph: CallFlowGraph, exit_marker: str = "exit") -> bool:
    """
    Decide whether reaching ``step`` ends the call.

    A step ends the call when its key contains ``exit_marker``, when it has
    no outgoing edges, or when it is the graph's default exit. The marker
    check is a naming heuristic and will also fire for keys such as
    ``exit_survey_intro`` that do branch onward.
    """
    if exit_marker and exit_marker in step.key:
        return True
    if step.is_dead_end:
        return True
    return step.key == graph.default_exit_step_key


def terminal_policy_for(exit_marker: str) -> TerminalPolicy:
    def policy(step: CallFlowStep, graph: CallFlowGraph) -> bool:
        return is_terminal_step(step, graph, exit_marker=exit_marker)

    return policy


@dataclass(frozen=True)
class Visit:
    step: CallFlowStep
    final: bool  # the walk stops after this visit


class FlowPath:
    """
    Restartable, lazy sequence of visits along a flow's happy path.

    Every ``iter()`` starts a fresh walk. The walk is finite: it stops at a
    terminal step, at a step with nowhere to go, or before revisiting a
    step. An unknown default exit raises ``DataIntegrityError`` up front; a
    dangling step reference raises it when reached.
    """

    def __init__(
        self,
        graph: CallFlowGraph,
        start_key: Optional[str] = None,
        terminal_policy: TerminalPolicy = is_terminal_step,
    ):
        if not graph.steps:
            raise EmptyGraphError(f"Call flow '{graph.name}' has no steps")
        if graph.default_exit_step_key not in graph.steps:
            raise DataIntegrityError(
                f"Call flow '{graph.name}': default exit '{graph.default_exit_step_key}' is not a step"
            )
        self.graph = graph
        self.start_key = start_key or graph.entry_key
        self.terminal_policy = terminal_policy

    def __iter__(self) -> Iterator[Visit]:
        graph = self.graph
        key = self.start_key
        came_from: Optional[str] = None
        seen = set()
        while True:
            step = graph.get_step(key)
            if step is None:
                if came_from is None:
                    raise DataIntegrityError(f"Call flow '{graph.name}' has no start step '{key}'")
                raise DataIntegrityError(
                    f"Call flow '{graph.name}': step '{came_from}' points to unknown step '{key}'"
                )
            seen.add(key)
            successor = step.continue_key()
            final = self.terminal_policy(step, graph) or successor is None
            if not final and successor in seen:
                logger.debug("Flow '%s' loops back from '%s' to '%s'; ending walk", graph.name, key, successor)
                final = True
            yield Visit(step=step, final=final)
            if final:
                return
            came_from, key = key, successor


def walk(
    graph: CallFlowGraph,
    start_key: Optional[str] = None,
    terminal_policy: TerminalPolicy = is_terminal_step,
) -> FlowPath:
    return FlowPath(graph, start_key=start_key, terminal_policy=terminal_policy)
