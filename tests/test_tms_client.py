"""Tests for the TMS contract helpers, the adapter factory and Settings validation."""
import pytest

from config import Settings
from errors import ConfigError
from models import TestCaseModel, TestStepModel
from testrail_client import TestRailClient
from tms_client import create_tms_client, step_lines


@pytest.fixture
def testrail_settings(monkeypatch):
    monkeypatch.setattr(Settings, "TMS_SOURCE", "testrail")
    monkeypatch.setattr(Settings, "TMS_URL", "https://acme.testrail.io")
    monkeypatch.setattr(Settings, "TMS_USER", "qa@acme.io")
    monkeypatch.setattr(Settings, "TMS_PASSWORD", "key")


class TestStepLines:
    def test_one_line_per_activity(self):
        case = TestCaseModel(
            name="Login",
            script_path="web.xlsx",
            activities=["Open", "Sign in"],
            steps=[
                TestStepModel(activity="Open", row=5, target="web", command="open(url)",
                              params=["https://acme.io"]),
                TestStepModel(activity="Sign in", row=6, description="enter user",
                              target="web", command="type(locator,text)"),
            ],
        )

        lines = step_lines(case)

        assert [content.splitlines()[0] for content, _ in lines] == ["Open", "Sign in"]
        assert "web » open(url) (https://acme.io)" in lines[0][0]
        assert "enter user: web » type(locator,text)" in lines[1][0]


class TestFactory:
    def test_builds_testrail_client(self, testrail_settings):
        client = create_tms_client("7")
        assert isinstance(client, TestRailClient)
        assert client.project_id == "7"

    def test_unknown_source_is_config_error(self, testrail_settings, monkeypatch):
        monkeypatch.setattr(Settings, "TMS_SOURCE", "jira")
        with pytest.raises(ConfigError, match="Unknown TMS_SOURCE"):
            create_tms_client("7")

    def test_missing_values_are_listed(self, testrail_settings, monkeypatch):
        monkeypatch.setattr(Settings, "TMS_URL", "")
        monkeypatch.setattr(Settings, "TMS_USER", "")
        with pytest.raises(ConfigError, match="TMS_URL, TMS_USER"):
            create_tms_client("7")

    def test_azure_does_not_need_a_user(self, testrail_settings, monkeypatch):
        monkeypatch.setattr(Settings, "TMS_SOURCE", "azure")
        monkeypatch.setattr(Settings, "TMS_USER", "")
        Settings.validate()
