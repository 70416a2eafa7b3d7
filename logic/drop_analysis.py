"""
AI follow-up for the worst drop-off point of a simulated funnel.

``DropAnalysisRequester`` sends one step's script to the text-generation
provider and returns its prose analysis. ``analyze_campaign`` is the action
the dashboard calls: simulate, pick the worst step, ask for the analysis,
and turn every failure into a message for the user.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from config.flow_definition import CallFlowGraph
from llm.client import LLMClient
from logic.dropoff_simulator import DropoffReport, DropoffSimulator, StepResult
from logic.errors import AnalysisProviderError, AnalysisRequestError, CallFlowError, LLMError
from logic.worst_step import pick_worst_step


logger = logging.getLogger(__name__)

NO_SIGNIFICANT_DROP_MESSAGE = (
    "AI analysis did not find significant non-terminal drop points in the simulated data. "
    "Ensure your call flow progresses logically."
)

PROMPT_TEMPLATE = """You are a call center optimization expert.
Campaign Name: {campaign_name}
Problem: High call drop-off rate ({drop_off_percentage}%) at step "{step_name}".
Script text for this step: "{step_text}"

Analyze potential reasons why calls might be dropping off at this specific step in the call flow. Consider factors like:
- Clarity and conciseness of the script text.
- Complexity of the question asked or information requested.
- Potential for user confusion or frustration.
- Length of the step or perceived wait time.
- Relevance of this step to the user's likely intent.

Provide a brief analysis (2-4 bullet points) of potential reasons for this drop-off and suggest 1-2 actionable improvements to the script text or flow at this point to reduce abandonment.
Focus your suggestions on the provided step text and its immediate context.
"""


@dataclass(frozen=True)
class DropAnalysisRequest:
    campaign_label: str
    step_key: str
    step_text: str
    drop_rate_percent: float

    def validate(self) -> None:
        for name in ("campaign_label", "step_key", "step_text"):
            if not (getattr(self, name) or "").strip():
                raise AnalysisRequestError(f"Drop analysis needs a non-empty {name}")
        if not 0 < self.drop_rate_percent <= 100:
            raise AnalysisRequestError(
                f"Drop rate must be in (0, 100], got {self.drop_rate_percent}"
            )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "campaignName": self.campaign_label,
            "stepName": self.step_key,
            "stepText": self.step_text,
            "dropOffPercentage": self.drop_rate_percent,
        }

    def render_prompt(self) -> str:
        return PROMPT_TEMPLATE.format(
            campaign_name=self.campaign_label,
            drop_off_percentage=self.drop_rate_percent,
            step_name=self.step_key,
            step_text=self.step_text,
        )


@dataclass(frozen=True)
class DropAnalysis:
    analysis: str


class DropAnalysisRequester:
    """Single-shot request to the provider: no retries, no caching."""

    def __init__(self, llm_client: LLMClient, model: Optional[str] = None, temperature: float = 0.4):
        self.llm_client = llm_client
        self.model = model
        self.temperature = temperature

    async def request(self, req: DropAnalysisRequest) -> DropAnalysis:
        req.validate()
        try:
            text = await self.llm_client.complete(
                req.render_prompt(),
                model=self.model,
                temperature=self.temperature,
            )
        except LLMError as exc:
            logger.warning("Drop analysis request failed for step '%s': %s", req.step_key, exc)
            raise AnalysisProviderError(f"AI analysis request failed: {exc}") from exc
        if not text or not text.strip():
            raise AnalysisProviderError("AI failed to generate an analysis for call drop point.")
        return DropAnalysis(analysis=text.strip())


@dataclass(frozen=True)
class AnalysisResult:
    analysis: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.analysis is not None


async def handle_analyze_call_drop(requester: DropAnalysisRequester, req: DropAnalysisRequest) -> AnalysisResult:
    try:
        result = await requester.request(req)
    except CallFlowError as exc:
        logger.error("Error analyzing call drop point: %s", exc)
        return AnalysisResult(error=str(exc) or "An unknown error occurred during AI analysis.")
    return AnalysisResult(analysis=result.analysis)


@dataclass(frozen=True)
class CampaignAnalysis:
    campaign_label: str
    report: Optional[DropoffReport] = None
    worst_step: Optional[StepResult] = None
    analysis: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None  # informational, not a failure


async def analyze_campaign(
    graph: CallFlowGraph,
    campaign_label: str,
    simulator: DropoffSimulator,
    requester: DropAnalysisRequester,
) -> CampaignAnalysis:
    """
    Simulate ``graph`` and ask for an analysis of its worst step.

    Never raises for data or provider problems; they come back in ``error``.
    When no step qualifies the provider is not called and ``message`` says so.
    """
    try:
        report = simulator.simulate(graph, campaign_label)
    except CallFlowError as exc:
        logger.error("Simulation failed for campaign '%s': %s", campaign_label, exc)
        return CampaignAnalysis(campaign_label=campaign_label, error=str(exc))

    worst = pick_worst_step(report)
    if worst is None:
        logger.info("No significant drop points for campaign '%s'", campaign_label)
        return CampaignAnalysis(
            campaign_label=campaign_label,
            report=report,
            message=NO_SIGNIFICANT_DROP_MESSAGE,
        )

    step = graph.get_step(worst.step_key)
    req = DropAnalysisRequest(
        campaign_label=campaign_label,
        step_key=worst.step_key,
        step_text=step.text if step else "",
        drop_rate_percent=worst.drop_rate_percent,
    )
    result = await handle_analyze_call_drop(requester, req)
    return CampaignAnalysis(
        campaign_label=campaign_label,
        report=report,
        worst_step=worst,
        analysis=result.analysis,
        error=result.error,
    )
