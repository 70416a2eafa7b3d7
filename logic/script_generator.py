"""
Turns a free-text master script into structured call flows.

The master script, plus any number of reworded variants, is split into
steps by the LLM. Scripts the LLM cannot structure still produce a usable
two-step flow so the campaign always gets one flow per script.
"""
import logging
from typing import Any, Dict, List, Optional

from config.flow_definition import CallFlowGraph
from llm.client import LLMClient
from logic.errors import CallFlowError


logger = logging.getLogger(__name__)

VARIANT_SEPARATOR = "||VARIANT_SEPARATOR||"
MAX_VARIANTS = 5
EXIT_KEY_CANDIDATES = ("graceful_exit", "exit")
PLACEHOLDER_EXIT_KEY = "standard_exit_placeholder"

VARIANT_PROMPT = """You are an expert script writer. The user has provided the following master script. Generate {count} distinct textual variations of this master script.
Each variant should maintain the core message and objective of the master script but use different phrasing, emphasis, or style.
Focus only on generating the variant script texts. Do not add any extra formatting or commentary.
Return each variant separated by '{separator}'.

Master Script:
{script}
"""

STRUCTURE_PROMPT = """You are an expert in call center script design. Convert the following call script text into a structured JSON object representing the steps of a call flow.
Identify logical steps within the provided script. Assign them meaningful keys (e.g., 'greeting', 'qualification_question', 'positive_outcome', 'negative_outcome', 'voicemail', 'exit').
For each step, provide:
- "description": A brief description of the step's purpose.
- "audio_file": A placeholder audio file name (e.g., "step_key.wav").
- "wait_for_response": true/false, whether the step asks a question or expects caller input.
- "timeout": seconds to wait if waiting for a response, otherwise omit.
- "text": The exact script text for this step.
- "next": (Optional) The key of the next step if this step unconditionally proceeds to another.
- "conditions": (Optional) An array of objects with "type" ("contains" or "default"), "keywords" (array of strings, for "contains") and "next".

Define at least one exit step which has no "next" or "conditions", and name the common exit step 'graceful_exit'.
Ensure all step keys referenced in "next" or "conditions" are defined.

Return ONLY a JSON object of the form {{"steps": {{"<step_key>": {{...}}}}}}.

The script text to process is:
```
{script}
```
"""


def fallback_flow(script: str, name: str, description: str) -> CallFlowGraph:
    return CallFlowGraph.from_dict({
        "name": name,
        "description": description,
        "default_exit": "final_exit",
        "steps": {
            "main_content": {
                "description": "Main content of the script",
                "audio_file": "main_content.wav",
                "wait_for_response": False,
                "text": script,
                "next": "final_exit",
            },
            "final_exit": {
                "description": "End of call",
                "audio_file": "final_exit.wav",
                "wait_for_response": False,
                "text": "Thank you. Goodbye.",
            },
        },
    })


def _with_default_exit(steps: Dict[str, Any]) -> str:
    """Pick the default exit key, adding a placeholder step when none exists."""
    for key in EXIT_KEY_CANDIDATES:
        if key in steps:
            return key
    steps[PLACEHOLDER_EXIT_KEY] = {
        "description": "Standard Call Exit",
        "audio_file": f"{PLACEHOLDER_EXIT_KEY}.wav",
        "wait_for_response": False,
        "text": "Thank you for your time. Goodbye.",
    }
    return PLACEHOLDER_EXIT_KEY


class CallFlowGenerator:
    def __init__(self, llm_client: LLMClient, model: Optional[str] = None):
        self.llm_client = llm_client
        self.model = model

    async def generate(
        self,
        master_script: str,
        campaign_name: str,
        campaign_description: str = "",
        variant_count: int = 0,
    ) -> List[CallFlowGraph]:
        """Master flow first, then one flow per generated variant."""
        if not 0 <= variant_count <= MAX_VARIANTS:
            raise ValueError(f"variant_count must be between 0 and {MAX_VARIANTS}")
        if not master_script.strip():
            raise ValueError("master_script must not be empty")

        scripts = [master_script]
        if variant_count:
            scripts.extend(await self._generate_variants(master_script, variant_count))

        flows = []
        for index, script in enumerate(scripts):
            is_master = index == 0
            name = campaign_name if is_master else f"{campaign_name} - Variant {index}"
            description = campaign_description if is_master else f"{campaign_description} (Variant {index})"
            flows.append(await self._structure(script, name, description))
        return flows

    async def _generate_variants(self, master_script: str, count: int) -> List[str]:
        prompt = VARIANT_PROMPT.format(count=count, separator=VARIANT_SEPARATOR, script=master_script)
        raw = await self.llm_client.complete(prompt, model=self.model, temperature=0.7)
        variants = [part.strip() for part in raw.split(VARIANT_SEPARATOR) if part.strip()]
        if len(variants) != count:
            logger.warning("LLM generated %d variants, expected %d; using what was generated", len(variants), count)
        return variants[:count]

    async def _structure(self, script: str, name: str, description: str) -> CallFlowGraph:
        try:
            data = await self.llm_client.chat_json(
                STRUCTURE_PROMPT.format(script=script),
                model=self.model,
                temperature=0.3,
            )
            steps = data.get("steps", data) if isinstance(data, dict) else None
            if not isinstance(steps, dict) or not steps:
                raise ValueError("no steps in structured reply")
            default_exit = _with_default_exit(steps)
            return CallFlowGraph.from_dict({
                "name": name,
                "description": description,
                "default_exit": default_exit,
                "steps": steps,
            })
        except (CallFlowError, ValueError) as exc:
            logger.error("Failed to structure script for '%s': %s; using fallback flow", name, exc)
            return fallback_flow(script, name, description)
