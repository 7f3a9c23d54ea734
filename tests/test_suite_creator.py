"""Tests for SuiteCreator."""
import pytest

from errors import WorkbookError
from models import TestCaseModel
from suite_creator import SuiteCreator


def _cases(*names):
    return [TestCaseModel(name=n, script_path="/p/artifact/script/web.xlsx") for n in names]


class TestSuiteCreator:
    def test_creates_suite_section_and_cases_in_order(self, fake_tms):
        suite = SuiteCreator(fake_tms).upload_script(_cases("A", "B", "C"), "web", "artifact/script/web.xlsx")

        assert fake_tms.names() == ["create_suite", "add_section", "add_cases"]
        assert fake_tms.calls_to("add_cases")[0] == ("S1", ["A", "B", "C"])
        assert list(suite.test_cases) == ["A", "B", "C"]
        assert suite.file_path == "artifact/script/web.xlsx"
        assert "artifact/script/web.xlsx" in fake_tms.calls_to("create_suite")[0][1]

    def test_empty_script_creates_nothing(self, fake_tms):
        with pytest.raises(WorkbookError):
            SuiteCreator(fake_tms).upload_script([], "web", "artifact/script/web.xlsx")
        assert fake_tms.calls == []
