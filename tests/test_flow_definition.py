"""Tests for the call-flow data model and its integrity checks."""

import pytest

from config.flow_definition import CallFlowGraph, CallFlowStep, StepCondition
from logic.errors import DataIntegrityError, EmptyGraphError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _flow_dict(**overrides):
    data = {
        "name": "Renewals",
        "description": "Policy renewal reminder",
        "default_exit": "goodbye",
        "steps": {
            "greeting": {
                "description": "Say hello",
                "text": "Hi, this is a reminder about your policy.",
                "wait_for_response": False,
                "next": "ask_renew",
            },
            "ask_renew": {
                "description": "Ask to renew",
                "text": "Would you like to renew today?",
                "wait_for_response": True,
                "timeout": 10,
                "conditions": [
                    {"type": "contains", "keywords": ["yes", "sure"], "next": "confirm"},
                    {"type": "default", "next": "goodbye"},
                ],
            },
            "confirm": {
                "description": "Confirm renewal",
                "text": "Great, you're all set.",
                "next": "goodbye",
            },
            "goodbye": {"description": "End", "text": "Goodbye."},
        },
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestFromDict:
    def test_parses_steps_in_order(self):
        graph = CallFlowGraph.from_dict(_flow_dict())

        assert graph.name == "Renewals"
        assert list(graph.steps) == ["greeting", "ask_renew", "confirm", "goodbye"]
        assert graph.entry_key == "greeting"
        assert graph.default_exit_step_key == "goodbye"

    def test_parses_step_fields(self):
        graph = CallFlowGraph.from_dict(_flow_dict())
        ask = graph.get_step("ask_renew")

        assert ask.key == "ask_renew"
        assert ask.waits_for_response is True
        assert ask.timeout_seconds == 10
        assert ask.next is None
        assert [c.match_type for c in ask.conditions] == ["contains", "default"]
        assert ask.conditions[0].keywords == ["yes", "sure"]

    def test_timeout_ignored_when_not_waiting(self):
        data = _flow_dict()
        data["steps"]["greeting"]["timeout"] = 5

        graph = CallFlowGraph.from_dict(data)

        assert graph.get_step("greeting").timeout_seconds is None

    def test_name_falls_back_to_argument(self):
        data = _flow_dict()
        del data["name"]

        graph = CallFlowGraph.from_dict(data, name="Fallback")

        assert graph.name == "Fallback"

    def test_condition_without_target_is_rejected(self):
        data = _flow_dict()
        data["steps"]["ask_renew"]["conditions"].append({"type": "default"})

        with pytest.raises(DataIntegrityError):
            CallFlowGraph.from_dict(data)

    def test_scalar_step_is_rejected(self):
        data = _flow_dict()
        data["steps"]["confirm"] = "Great, you're all set."

        with pytest.raises(DataIntegrityError, match="confirm"):
            CallFlowGraph.from_dict(data)

    @pytest.mark.parametrize("conditions", ["goodbye", ["goodbye"]])
    def test_malformed_conditions_are_rejected(self, conditions):
        data = _flow_dict()
        data["steps"]["ask_renew"]["conditions"] = conditions

        with pytest.raises(DataIntegrityError, match="ask_renew"):
            CallFlowGraph.from_dict(data)

    def test_to_dict_keeps_authored_shape(self):
        graph = CallFlowGraph.from_dict(_flow_dict())

        dumped = graph.to_dict()

        assert dumped["default_exit"] == "goodbye"
        assert dumped["steps"]["ask_renew"]["timeout"] == 10
        assert dumped["steps"]["ask_renew"]["conditions"][1] == {"type": "default", "next": "goodbye"}
        assert CallFlowGraph.from_dict(dumped).to_dict() == dumped


class TestValidate:
    def test_dangling_next_is_rejected(self):
        data = _flow_dict()
        data["steps"]["confirm"]["next"] = "missing_step"

        with pytest.raises(DataIntegrityError, match="missing_step"):
            CallFlowGraph.from_dict(data)

    def test_dangling_condition_target_is_rejected(self):
        data = _flow_dict()
        data["steps"]["ask_renew"]["conditions"][0]["next"] = "nowhere"

        with pytest.raises(DataIntegrityError, match="nowhere"):
            CallFlowGraph.from_dict(data)

    def test_unknown_default_exit_is_rejected(self):
        with pytest.raises(DataIntegrityError, match="default exit"):
            CallFlowGraph.from_dict(_flow_dict(default_exit="the_end"))

    def test_empty_graph_is_rejected(self):
        with pytest.raises(EmptyGraphError):
            CallFlowGraph.from_dict(_flow_dict(steps={}))

    @pytest.mark.parametrize("timeout", [0, -3, 2.5])
    def test_non_positive_integer_timeout_is_rejected(self, timeout):
        data = _flow_dict()
        data["steps"]["ask_renew"]["timeout"] = timeout

        with pytest.raises(DataIntegrityError, match="timeout"):
            CallFlowGraph.from_dict(data)

    def test_mismatched_step_key_is_rejected(self):
        graph = CallFlowGraph(
            name="Broken",
            steps={"a": CallFlowStep(key="b")},
            default_exit_step_key="a",
        )

        with pytest.raises(DataIntegrityError):
            graph.validate()

    def test_direct_construction_does_not_validate(self):
        graph = CallFlowGraph(
            name="Draft",
            steps={"a": CallFlowStep(key="a", next="later")},
            default_exit_step_key="a",
        )

        assert graph.get_step("a").next == "later"


class TestStepNavigation:
    def test_continue_key_prefers_next(self):
        step = CallFlowStep(
            key="s",
            next="after",
            conditions=[StepCondition(match_type="default", next_step_key="other")],
        )

        assert step.continue_key() == "after"

    def test_continue_key_uses_first_condition(self):
        step = CallFlowStep(
            key="s",
            conditions=[
                StepCondition(match_type="contains", keywords=["yes"], next_step_key="first"),
                StepCondition(match_type="default", next_step_key="second"),
            ],
        )

        assert step.continue_key() == "first"

    def test_dead_end_has_no_continue_key(self):
        step = CallFlowStep(key="end")

        assert step.is_dead_end
        assert step.continue_key() is None
        assert step.outgoing_keys() == []

    def test_route_first_match_wins(self):
        step = CallFlowGraph.from_dict(_flow_dict()).get_step("ask_renew")

        assert step.route("Yes please, SURE") == "confirm"
        assert step.route("I don't think so") == "goodbye"

    def test_route_falls_back_to_next(self):
        step = CallFlowStep(
            key="s",
            next="fallback",
            conditions=[StepCondition(match_type="contains", keywords=["yes"], next_step_key="yes_path")],
        )

        assert step.route("maybe") == "fallback"

    def test_interactive_when_waiting_or_branching(self):
        assert CallFlowStep(key="a", waits_for_response=True).is_interactive
        assert CallFlowStep(
            key="b", conditions=[StepCondition(match_type="default", next_step_key="c")]
        ).is_interactive
        assert not CallFlowStep(key="c", next="d").is_interactive
