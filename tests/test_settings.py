from sprint_planner.planning.config import PlanningConfig
from sprint_planner.settings import Settings


def test_defaults(monkeypatch):
    for name in ("COMPLETED_STATUS_NAMES", "BACKLOG_STATUS_NAMES", "DRY_RUN", "PLANNER_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.completed_status_names == ["Done", "Closed", "Completed"]
    assert settings.backlog_status_names == ["To Do", "Open", "Backlog"]
    assert settings.planner_max_retries == 3
    assert settings.completed_points_include_all_issues is True
    assert settings.gemini_model == "gemini-2.5-flash-lite"


def test_csv_status_lists_from_env(monkeypatch):
    monkeypatch.setenv("COMPLETED_STATUS_NAMES", "Done, Shipped ,")
    monkeypatch.setenv("BACKLOG_STATUS_NAMES", "")
    monkeypatch.setenv("FALLBACK_ON_FAILURE", "true")

    settings = Settings(_env_file=None)

    assert settings.completed_status_names == ["Done", "Shipped"]
    assert settings.backlog_status_names == ["To Do", "Open", "Backlog"]
    assert settings.fallback_on_failure is True


def test_planning_config_from_settings(monkeypatch):
    monkeypatch.setenv("PLANNER_MAX_RETRIES", "5")
    monkeypatch.setenv("PROMPT_BACKLOG_LIMIT", "20")

    config = PlanningConfig.from_settings(Settings(_env_file=None))

    assert config.max_retries == 5
    assert config.prompt_backlog_limit == 20
    assert config.completed_status_names == frozenset({"Done", "Closed", "Completed"})
