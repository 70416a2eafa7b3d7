import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from llm.client import LLMClient
from logic.errors import AnalysisProviderError, LLMError


logger = logging.getLogger(__name__)

AVAILABLE_BACKGROUND_NOISES = [
    "None",
    "Office Chatter",
    "Cafe Ambience",
    "Call Center Buzz",
    "Light Rain",
    "Street Traffic",
]

PROMPT_TEMPLATE = """You are an AI agent optimization expert. Analyze the provided performance data to suggest the best combinations of script variants and voices for AI agents.
Also, consider if a background noise environment could enhance performance.

Script Variants: {script_variants}
Voices: {voices}
Performance Data (script variant -> voice -> conversion rate): {performance_data}
Available Background Noises: {noises}

Based on this data, provide suggestions for optimal script variant, voice, and optionally, background noise combinations.
If suggesting background noise, specify the type and a volume level (0-100). If no noise is better, indicate "None" or omit noise fields.
Explain why you think this combination (including any noise) will improve performance in the rationale.
Return a JSON object {{"suggestions": [...]}}. Each suggestion has 'scriptVariant', 'voice', 'rationale', and optionally 'backgroundNoise' and 'backgroundNoiseVolume'.
"""


@dataclass(frozen=True)
class OptimizationSuggestion:
    script_variant: str
    voice: str
    rationale: str
    background_noise: Optional[str] = None
    background_noise_volume: Optional[int] = None


@dataclass(frozen=True)
class OptimizationResult:
    suggestions: Optional[List[OptimizationSuggestion]] = None
    error: Optional[str] = None


def _parse_suggestion(raw: dict) -> OptimizationSuggestion:
    volume = raw.get("backgroundNoiseVolume")
    if volume is not None:
        volume = max(0, min(100, int(volume)))
    noise = raw.get("backgroundNoise") or None
    if noise == "None":
        noise = None
    return OptimizationSuggestion(
        script_variant=str(raw["scriptVariant"]),
        voice=str(raw["voice"]),
        rationale=str(raw.get("rationale", "")),
        background_noise=noise,
        background_noise_volume=volume if noise else None,
    )


class OptimizationAdvisor:
    """Suggests script/voice/background-noise combinations from performance data."""

    def __init__(self, llm_client: LLMClient, model: Optional[str] = None):
        self.llm_client = llm_client
        self.model = model

    async def suggest(
        self,
        script_variants: List[str],
        voices: List[str],
        performance_data: Dict[str, Dict[str, float]],
    ) -> List[OptimizationSuggestion]:
        prompt = PROMPT_TEMPLATE.format(
            script_variants=json.dumps(script_variants, ensure_ascii=False),
            voices=json.dumps(voices, ensure_ascii=False),
            performance_data=json.dumps(performance_data, ensure_ascii=False),
            noises=", ".join(AVAILABLE_BACKGROUND_NOISES),
        )
        try:
            data = await self.llm_client.chat_json(prompt, model=self.model, temperature=0.3)
        except LLMError as exc:
            raise AnalysisProviderError(f"Optimization request failed: {exc}") from exc

        raw_suggestions = data.get("suggestions") if isinstance(data, dict) else None
        if not isinstance(raw_suggestions, list):
            raise AnalysisProviderError("AI reply did not contain a suggestions list")
        try:
            return [_parse_suggestion(item) for item in raw_suggestions]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise AnalysisProviderError(f"AI reply had a malformed suggestion: {exc}") from exc


async def handle_suggest_optimization(
    advisor: OptimizationAdvisor,
    script_variants: List[str],
    voices: List[str],
    performance_data: Dict[str, Dict[str, float]],
) -> OptimizationResult:
    try:
        suggestions = await advisor.suggest(script_variants, voices, performance_data)
    except AnalysisProviderError as exc:
        logger.error("Error suggesting agent optimization: %s", exc)
        return OptimizationResult(error=str(exc))
    return OptimizationResult(suggestions=suggestions)
