"""
Data models for call-flow definitions.

A call flow is a named graph of scripted steps keyed by step name. Each step
either continues unconditionally (``next``), branches on what the caller
said (``conditions``), or ends the call. Flows are authored as YAML/JSON
dicts (see ``config/flows/``) and parsed with ``CallFlowGraph.from_dict``.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from logic.errors import DataIntegrityError, EmptyGraphError


MATCH_CONTAINS = "contains"
MATCH_DEFAULT = "default"


@dataclass
class StepCondition:
    """One branching rule; conditions are evaluated in order, first match wins."""
    match_type: str  # "contains" or "default"
    next_step_key: str
    keywords: List[str] = field(default_factory=list)

    def matches(self, utterance: str) -> bool:
        if self.match_type == MATCH_DEFAULT:
            return True
        if self.match_type == MATCH_CONTAINS:
            text = (utterance or "").lower()
            return any(word.lower() in text for word in self.keywords if word)
        return False


@dataclass
class CallFlowStep:
    """A single scripted line in a call flow."""
    key: str  # unique within the owning graph
    description: str = ""
    text: str = ""
    waits_for_response: bool = False
    timeout_seconds: Optional[int] = None  # only meaningful when waiting

    # Navigation
    next: Optional[str] = None
    conditions: List[StepCondition] = field(default_factory=list)

    audio_file: Optional[str] = None

    @property
    def is_interactive(self) -> bool:
        return self.waits_for_response or bool(self.conditions)

    @property
    def is_dead_end(self) -> bool:
        return not self.next and not self.conditions

    def outgoing_keys(self) -> List[str]:
        keys = [self.next] if self.next else []
        keys.extend(cond.next_step_key for cond in self.conditions)
        return keys

    def continue_key(self) -> Optional[str]:
        """Successor on the happy path: ``next``, else the first condition target."""
        if self.next:
            return self.next
        if self.conditions:
            return self.conditions[0].next_step_key
        return None

    def route(self, utterance: str) -> Optional[str]:
        """Pick the successor for a real caller utterance."""
        for cond in self.conditions:
            if cond.matches(utterance):
                return cond.next_step_key
        return self.next


@dataclass
class CallFlowGraph:
    """A named call flow. The first inserted step is the entry point."""
    name: str
    steps: Dict[str, CallFlowStep] = field(default_factory=dict)
    default_exit_step_key: str = ""
    description: str = ""

    @property
    def entry_key(self) -> Optional[str]:
        return next(iter(self.steps), None)

    def get_step(self, key: str) -> Optional[CallFlowStep]:
        return self.steps.get(key)

    def validate(self) -> "CallFlowGraph":
        """Check referential integrity; returns self so it can be chained."""
        if not self.steps:
            raise EmptyGraphError(f"Call flow '{self.name}' has no steps")
        if self.default_exit_step_key not in self.steps:
            raise DataIntegrityError(
                f"Call flow '{self.name}': default exit '{self.default_exit_step_key}' is not a step"
            )
        for key, step in self.steps.items():
            if step.key != key:
                raise DataIntegrityError(
                    f"Call flow '{self.name}': step stored under '{key}' is keyed '{step.key}'"
                )
            for target in step.outgoing_keys():
                if target not in self.steps:
                    raise DataIntegrityError(
                        f"Call flow '{self.name}': step '{key}' points to unknown step '{target}'"
                    )
            if step.timeout_seconds is not None and (
                isinstance(step.timeout_seconds, bool)
                or not isinstance(step.timeout_seconds, int)
                or step.timeout_seconds <= 0
            ):
                raise DataIntegrityError(
                    f"Call flow '{self.name}': step '{key}' has invalid timeout {step.timeout_seconds!r}"
                )
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str = "") -> "CallFlowGraph":
        """Parse the authored dict shape and validate it."""
        raw_steps = data.get("steps") or {}
        if not isinstance(raw_steps, dict):
            raise DataIntegrityError("Call flow 'steps' must be a mapping of step key to step")
        graph = cls(
            name=data.get("name") or name,
            description=data.get("description", ""),
            default_exit_step_key=data.get("default_exit", ""),
            steps={key: _parse_step(key, raw or {}) for key, raw in raw_steps.items()},
        )
        return graph.validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "default_exit": self.default_exit_step_key,
            "steps": {key: _dump_step(step) for key, step in self.steps.items()},
        }


def _parse_step(key: str, raw: Dict[str, Any]) -> CallFlowStep:
    if not isinstance(raw, dict):
        raise DataIntegrityError(f"Step '{key}' must be a mapping, got {type(raw).__name__}")
    raw_conditions = raw.get("conditions") or []
    if not isinstance(raw_conditions, list):
        raise DataIntegrityError(f"Step '{key}' conditions must be a list")
    conditions = []
    for cond in raw_conditions:
        if not isinstance(cond, dict):
            raise DataIntegrityError(f"Step '{key}' has a condition that is not a mapping")
        if not cond.get("next"):
            raise DataIntegrityError(f"Step '{key}' has a condition without a 'next' step")
        keywords = cond.get("keywords") or []
        if not isinstance(keywords, list):
            raise DataIntegrityError(f"Step '{key}' has condition keywords that are not a list")
        conditions.append(StepCondition(
            match_type=cond.get("type", MATCH_DEFAULT),
            next_step_key=cond["next"],
            keywords=list(keywords),
        ))
    waits = bool(raw.get("wait_for_response", False))
    return CallFlowStep(
        key=key,
        description=raw.get("description", ""),
        text=raw.get("text", ""),
        waits_for_response=waits,
        timeout_seconds=raw.get("timeout") if waits else None,
        next=raw.get("next") or None,
        conditions=conditions,
        audio_file=raw.get("audio_file"),
    )


def _dump_step(step: CallFlowStep) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "description": step.description,
        "text": step.text,
        "wait_for_response": step.waits_for_response,
    }
    if step.timeout_seconds is not None:
        out["timeout"] = step.timeout_seconds
    if step.next:
        out["next"] = step.next
    if step.conditions:
        out["conditions"] = [
            {"type": c.match_type, "keywords": list(c.keywords), "next": c.next_step_key}
            if c.keywords
            else {"type": c.match_type, "next": c.next_step_key}
            for c in step.conditions
        ]
    if step.audio_file:
        out["audio_file"] = step.audio_file
    return out
