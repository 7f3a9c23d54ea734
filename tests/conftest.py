"""Shared fixtures: on-disk project trees, workbook builders and a recording TMS."""

import json
from itertools import count

import pytest
from openpyxl import Workbook
from openpyxl.styles import Font

from errors import TmsError
from models import Section, SuiteDescriptor, TestRun
from tms_client import TmsClient

MUTATING = {"create_suite", "update_suite", "add_section", "add_cases", "update_case",
            "delete", "close_run", "update_case_order"}

DEFAULT_ROWS = [
    ("Open", "web", "open(url)"),
    (None, "web", "assertTitle(title)"),
]


class FakeTms(TmsClient):
    """In-memory TMS that records every call."""

    def __init__(self, project_id="7", sections=1, runs=None):
        super().__init__(project_id)
        self.calls = []
        self.section_count = sections
        self.runs = list(runs or [])
        self._ids = count(100)
        self.fail_on = None

    def _record(self, name, *args):
        self.calls.append((name, args))
        if name == self.fail_on:
            raise TmsError(name, "503 Service Unavailable")

    def names(self):
        return [name for name, _ in self.calls]

    def calls_to(self, name):
        return [args for called, args in self.calls if called == name]

    def mutations(self):
        return [name for name in self.names() if name in MUTATING]

    def create_suite(self, name, description):
        self._record("create_suite", name, description)
        suite_id = str(next(self._ids))
        return SuiteDescriptor(id=suite_id, name=name, url=f"https://tms/suites/{suite_id}")

    def update_suite(self, suite_id, description):
        self._record("update_suite", suite_id, description)
        return SuiteDescriptor(id=suite_id)

    def add_section(self, name, suite_id):
        self._record("add_section", name, suite_id)
        return "S1"

    def get_sections(self, suite_id):
        self._record("get_sections", suite_id)
        return [Section(id=f"S{i}", name=f"section {i}") for i in range(1, self.section_count + 1)]

    def add_cases(self, section_id, cases):
        self._record("add_cases", section_id, [c.key for c in cases])
        return {case.key: str(next(self._ids)) for case in cases}

    def update_case(self, case_id, case, dry_run=False):
        self._record("update_case", case_id, case.key)
        return {case.key: case_id}

    def delete(self, case_ids):
        self._record("delete", list(case_ids))

    def get_existing_active_runs(self, suite_id):
        self._record("get_existing_active_runs", suite_id)
        return list(self.runs)

    def close_run(self, run_id):
        self._record("close_run", run_id)

    def update_case_order(self, suite_id, section_id, ordered_ids):
        self._record("update_case_order", suite_id, section_id, ordered_ids)


def write_script(path, scenarios, system_sheet=True):
    """scenarios: sheet name → rows of (activity, target, command[, "struck"])."""
    wb = Workbook()
    wb.remove(wb.active)
    if system_sheet:
        wb.create_sheet("#data")
    for name, rows in scenarios.items():
        ws = wb.create_sheet(name)
        ws["A2"] = f"{name} description"
        for offset, row in enumerate(rows or DEFAULT_ROWS):
            r = 5 + offset
            activity, target, command, *flags = row
            if activity is not None:
                ws.cell(row=r, column=1, value=activity)
            ws.cell(row=r, column=3, value=target)
            ws.cell(row=r, column=4, value=command)
            if "struck" in flags:
                ws.cell(row=r, column=4).font = Font(strike=True)
    wb.save(path)
    return path


def write_plan(path, subplans):
    """subplans: sheet name → rows of (script, scenarios[, "struck"])."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in subplans.items():
        ws = wb.create_sheet(name)
        for offset, row in enumerate(rows):
            r = 5 + offset
            script, scenarios, *flags = row
            ws.cell(row=r, column=1, value=f"step {offset + 1}")
            ws.cell(row=r, column=2, value=script)
            if scenarios:
                ws.cell(row=r, column=3, value=scenarios)
            if "struck" in flags:
                ws.cell(row=r, column=2).font = Font(strike=True)
    wb.save(path)
    return path


@pytest.fixture
def project(tmp_path):
    """A standard project tree with an empty manifest for project 7."""
    root = tmp_path / "proj"
    (root / "artifact" / "script").mkdir(parents=True)
    (root / "artifact" / "plan").mkdir(parents=True)
    (root / ".meta").mkdir()
    (root / ".meta" / "project.tms.json").write_text(json.dumps({"projectId": "7", "files": []}))
    return root


@pytest.fixture
def script_factory(project):
    def _make(name, scenarios):
        return write_script(project / "artifact" / "script" / name, scenarios)
    return _make


@pytest.fixture
def plan_factory(project):
    def _make(name, subplans):
        return write_plan(project / "artifact" / "plan" / name, subplans)
    return _make


@pytest.fixture
def fake_tms():
    return FakeTms()


@pytest.fixture
def active_run():
    return TestRun(id="55", name="Nightly")
