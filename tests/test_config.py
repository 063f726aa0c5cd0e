import os
from unittest.mock import patch

import pytest

from framebot import main as main_module
from framebot.config import Settings, load_env, load_templates
from framebot.decisions import FixedTrim, ImageMetadata, Region, decide


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-test")
    monkeypatch.setenv("SLACK_APP_TOKEN", "xapp-test")
    monkeypatch.setenv("TARGET_CHANNEL_ID", "C123")
    for name in ("MAX_SIZE", "TEMPLATES_FILE", "TEMPLATE_WIDTH", "SAMPLE_STRIDE", "PORT", "HEALTH_SERVER_ENABLED"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize("missing", ["SLACK_BOT_TOKEN", "SLACK_APP_TOKEN", "TARGET_CHANNEL_ID"])
def test_missing_required_variable(mock_env, monkeypatch, missing):
    monkeypatch.delenv(missing)
    with pytest.raises(ValueError, match=missing):
        Settings.from_env()


def test_defaults(mock_env):
    settings = Settings.from_env()

    assert settings.target_channel_id == "C123"
    assert settings.max_size == 2048
    assert settings.port == 8080
    assert settings.health_server_enabled is True
    assert settings.scan.brightness_threshold == 245
    assert settings.scan.sample_stride == 10
    assert settings.scan.coverage_threshold == 0.95
    assert settings.scan.min_border_thickness == 6

    template = settings.templates[0]
    assert (template.width, template.height) == (2048, 1440)
    assert template.crop == Region(64, 69, 1920, 1080)


def test_overrides(mock_env, monkeypatch):
    monkeypatch.setenv("MAX_SIZE", "1024")
    monkeypatch.setenv("SAMPLE_STRIDE", "4")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("HEALTH_SERVER_ENABLED", "false")

    settings = Settings.from_env()

    assert settings.decision.max_size == 1024
    assert settings.scan.sample_stride == 4
    assert settings.port == 9000
    assert settings.health_server_enabled is False


def test_malformed_number(mock_env, monkeypatch):
    monkeypatch.setenv("MAX_SIZE", "big")
    with pytest.raises(ValueError, match="MAX_SIZE"):
        Settings.from_env()


def test_template_crop_must_fit(mock_env, monkeypatch):
    monkeypatch.setenv("TEMPLATE_WIDTH", "1000")
    with pytest.raises(ValueError, match="does not fit"):
        Settings.from_env()


def test_templates_file_extends_catalogue(mock_env, monkeypatch, tmp_path):
    catalogue = tmp_path / "templates.yml"
    catalogue.write_text(
        "templates:\n"
        "  - name: phone\n"
        "    width: 1170\n"
        "    height: 2532\n"
        "    crop: {left: 0, top: 120, width: 1170, height: 2200}\n"
    )
    monkeypatch.setenv("TEMPLATES_FILE", str(catalogue))

    settings = Settings.from_env()

    assert [t.name for t in settings.templates] == ["env", "phone"]
    decision = decide(ImageMetadata(1170, 2532, "png"), None, settings.decision)
    assert decision.action == FixedTrim(Region(0, 120, 1170, 2200))


def test_invalid_templates_file(tmp_path):
    catalogue = tmp_path / "templates.yml"
    catalogue.write_text("templates:\n  - name: broken\n    width: 10\n")
    with pytest.raises(ValueError, match="broken|#0"):
        load_templates(str(catalogue))


def test_load_env_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\n"
        "export FRAMEBOT_TEST_A=from-file\n"
        "FRAMEBOT_TEST_B='quoted'\n"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FRAMEBOT_TEST_A", "from-env")
    monkeypatch.delenv("FRAMEBOT_TEST_B", raising=False)

    added = load_env()

    assert added == ["FRAMEBOT_TEST_B"]
    assert os.environ["FRAMEBOT_TEST_A"] == "from-env"
    assert os.environ["FRAMEBOT_TEST_B"] == "quoted"
    monkeypatch.delenv("FRAMEBOT_TEST_B")


def test_load_env_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_env(locations=[".env"]) == []


@pytest.mark.parametrize("content", [
    None,
    "templates: [\n  - {width: 1",
    "- {width: 10, height: 10}\n",
    "templates: {width: 10}\n",
])
def test_bad_templates_file_is_a_configuration_error(tmp_path, content):
    catalogue = tmp_path / "templates.yml"
    if content is not None:
        catalogue.write_text(content)

    with pytest.raises(ValueError, match="templates"):
        load_templates(str(catalogue))


@pytest.mark.parametrize("content", [None, "templates: [\n  - {width: 1", "- {width: 10, height: 10}\n"])
def test_main_exits_cleanly_on_bad_templates_file(mock_env, monkeypatch, tmp_path, content):
    catalogue = tmp_path / "templates.yml"
    if content is not None:
        catalogue.write_text(content)
    monkeypatch.setenv("TEMPLATES_FILE", str(catalogue))

    with patch('framebot.main.load_env'), patch('framebot.main.FrameBot') as bot:
        assert main_module.main() == 1
    bot.assert_not_called()
