from __future__ import annotations

import pytest

from surveyflow.core.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("SURVEYFLOW_CONDITIONAL_BRANCHES", "SURVEYFLOW_MAX_ATTACHMENT_BYTES", "SURVEYFLOW_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.schema.conditional_branch_count == 3
    assert settings.attachments.max_bytes == 5 * 1024 * 1024
    assert settings.log_level == "INFO"
    assert settings.survey_file_path.name == "sample_survey.json"


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SURVEYFLOW_CONDITIONAL_BRANCHES", "4")
    monkeypatch.setenv("SURVEYFLOW_ALLOWED_CONTENT_TYPES", "Image/PNG, application/pdf")
    monkeypatch.setenv("SURVEYFLOW_LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.schema.conditional_branch_count == 4
    assert settings.attachments.default_content_types == frozenset({"image/png", "application/pdf"})
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["zero", "0", "-3"])
def test_invalid_integers_fail_fast(monkeypatch, value) -> None:
    monkeypatch.setenv("SURVEYFLOW_REPORT_PAGE_SIZE", value)

    with pytest.raises(RuntimeError):
        Settings()


def test_min_options_cannot_exceed_max(monkeypatch) -> None:
    monkeypatch.setenv("SURVEYFLOW_MIN_SELECT_OPTIONS", "6")
    monkeypatch.setenv("SURVEYFLOW_MAX_SELECT_OPTIONS", "5")

    with pytest.raises(RuntimeError):
        Settings()
