import pytest

from config.settings import get_settings


ENV_KEYS = [
    "LLM_BASE_URL", "LLM_API_KEY", "LLM_MODEL", "SIM_INITIAL_VOLUME",
    "SIM_PASSIVE_DROP_RANGE", "SIM_INTERACTIVE_DROP_RANGE", "SIM_EXIT_MARKER",
    "SIM_SEED", "FLOWS_DIR", "LOG_LEVEL", "LLM_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        # setenv first so teardown also removes values the .env loader writes
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestGetSettings:
    def test_defaults(self, clean_env):
        settings = get_settings()

        assert settings.llm.model == "gpt-4o-mini"
        assert settings.llm.api_key == ""
        assert settings.simulation.initial_volume == 1000
        assert settings.simulation.passive_drop_range == (0.02, 0.07)
        assert settings.simulation.interactive_drop_range == (0.05, 0.25)
        assert settings.simulation.exit_marker == "exit"
        assert settings.simulation.seed is None
        assert settings.flows_dir == "config/flows"

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("SIM_PASSIVE_DROP_RANGE", "0.01, 0.03")
        clean_env.setenv("SIM_SEED", "42")
        clean_env.setenv("LLM_TIMEOUT", "5")

        settings = get_settings()

        assert settings.simulation.passive_drop_range == (0.01, 0.03)
        assert settings.simulation.seed == 42
        assert settings.timeouts.llm_timeout == 5.0

    @pytest.mark.parametrize("raw", ["abc", "0.5", "0.3,0.1", "0.2,1.5"])
    def test_bad_range_falls_back(self, clean_env, raw):
        clean_env.setenv("SIM_INTERACTIVE_DROP_RANGE", raw)

        assert get_settings().simulation.interactive_drop_range == (0.05, 0.25)

    def test_dotenv_does_not_override_environment(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("LLM_MODEL=from-file\nLLM_API_KEY=file-key\n# comment\n", encoding="utf-8")
        clean_env.setenv("LLM_MODEL", "from-env")

        settings = get_settings()

        assert settings.llm.model == "from-env"
        assert settings.llm.api_key == "file-key"
