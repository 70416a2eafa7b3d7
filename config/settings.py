import os
from dataclasses import dataclass
from typing import Optional, Tuple


def _load_dotenv(path: str = ".env") -> None:
    """
    Minimal .env loader using only the standard library.
    Existing environment variables are not overridden.
    """
    if not os.path.exists(path):
        return

    with open(path, encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            if key not in os.environ:
                os.environ[key] = value


def _parse_range(value: str, default: Tuple[float, float]) -> Tuple[float, float]:
    try:
        low, high = (float(part) for part in value.split(","))
    except ValueError:
        return default
    if not 0.0 <= low <= high < 1.0:
        return default
    return low, high


def _parse_optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclass
class LLMSettings:
    base_url: str
    api_key: str
    model: str


@dataclass
class SimulationSettings:
    """
    Knobs for the synthetic drop-off funnel.

    Drop ranges are fractions of the volume reaching a step: passive steps
    only speak, interactive steps wait for the caller or branch.
    """
    initial_volume: int
    passive_drop_range: Tuple[float, float]
    interactive_drop_range: Tuple[float, float]
    exit_marker: str
    seed: Optional[int]


@dataclass
class ConcurrencySettings:
    max_parallel_llm: int
    http_max_connections: int


@dataclass
class TimeoutSettings:
    llm_timeout: float


@dataclass
class Settings:
    llm: LLMSettings
    simulation: SimulationSettings
    concurrency: ConcurrencySettings
    timeouts: TimeoutSettings
    flows_dir: str
    log_level: str


def get_settings() -> Settings:
    _load_dotenv()

    llm = LLMSettings(
        base_url=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"),
        api_key=os.getenv("LLM_API_KEY", ""),
        model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
    )

    simulation = SimulationSettings(
        initial_volume=int(os.getenv("SIM_INITIAL_VOLUME", "1000")),
        passive_drop_range=_parse_range(
            os.getenv("SIM_PASSIVE_DROP_RANGE", "0.02,0.07"), default=(0.02, 0.07)
        ),
        interactive_drop_range=_parse_range(
            os.getenv("SIM_INTERACTIVE_DROP_RANGE", "0.05,0.25"), default=(0.05, 0.25)
        ),
        exit_marker=os.getenv("SIM_EXIT_MARKER", "exit"),
        seed=_parse_optional_int(os.getenv("SIM_SEED")),
    )

    concurrency = ConcurrencySettings(
        max_parallel_llm=int(os.getenv("MAX_PARALLEL_LLM", "4")),
        http_max_connections=int(os.getenv("HTTP_MAX_CONNECTIONS", "20")),
    )

    timeouts = TimeoutSettings(
        llm_timeout=float(os.getenv("LLM_TIMEOUT", "30")),
    )

    return Settings(
        llm=llm,
        simulation=simulation,
        concurrency=concurrency,
        timeouts=timeouts,
        flows_dir=os.getenv("FLOWS_DIR", "config/flows"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
