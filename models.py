"""
models.py – Plain data-classes shared across every module.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

SCRIPT = "SCRIPT"
PLAN = "PLAN"


@dataclass
class TestStepModel:
    """One enabled row inside a scenario's activity grouping."""

    activity: str
    row: int
    description: str = ""
    target: str = ""
    command: str = ""
    params: list[str] = field(default_factory=list)
    flow_controls: str = ""

    def signature(self) -> str:
        parts = [self.activity, self.description, self.target, self.command,
                 *self.params, self.flow_controls]
        return "\x1f".join(parts)


@dataclass
class TestCaseModel:
    """A scenario parsed from a script workbook (or a plan step's copy of one)."""

    name: str
    script_path: str
    description: str = ""
    activities: list[str] = field(default_factory=list)
    steps: list[TestStepModel] = field(default_factory=list)
    row: int | None = None
    plan_step_index: int | None = None

    @property
    def script_name(self) -> str:
        return Path(self.script_path).stem

    @property
    def key(self) -> str:
        """Composite identity used to match against recorded TMS cases.

        Plain scenario name in script context, ``script/scenario/row`` when the
        case was synthesized for a plan step.
        """
        if self.row is None:
            return self.name
        return f"{self.script_name}/{self.name}/{self.row}"

    @property
    def fingerprint(self) -> str:
        digest = hashlib.sha1()
        digest.update(self.description.encode("utf-8"))
        for step in self.steps:
            digest.update(b"\x1e")
            digest.update(step.signature().encode("utf-8"))
        return digest.hexdigest()

    def steps_by_activity(self) -> dict[str, list[TestStepModel]]:
        grouped: dict[str, list[TestStepModel]] = {name: [] for name in self.activities}
        for step in self.steps:
            grouped.setdefault(step.activity, []).append(step)
        return grouped

    def for_plan_step(self, row: int, index: int) -> TestCaseModel:
        """Return a copy owned by a plan step; steps are copied, never shared."""
        return replace(
            self,
            activities=list(self.activities),
            steps=[replace(s, params=list(s.params)) for s in self.steps],
            row=row,
            plan_step_index=index,
        )


@dataclass
class Scenario:
    """A case already recorded in the project manifest."""

    test_case: str
    test_case_id: str
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.name or self.test_case,
            "testCase": self.test_case,
            "testCaseId": self.test_case_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scenario:
        return cls(
            test_case=str(data["testCase"]),
            test_case_id=str(data["testCaseId"]),
            name=data.get("scenario"),
        )


@dataclass
class TestFile:
    """Manifest entry for one synchronized script, or one (plan, subplan) pair."""

    path: str
    file_type: str
    suite_id: str | None = None
    subplan: str | None = None
    plan_steps: list[TestFile] | None = None
    scenarios: list[Scenario] | None = None
    suite_url: str | None = None
    step_id: str | None = None
    cache: dict[str, str] | None = None

    def existing_cases(self) -> list[Scenario]:
        """Every recorded case, flattened across plan steps for plan entries."""
        if self.plan_steps:
            cases: list[Scenario] = []
            for step in self.plan_steps:
                cases.extend(step.scenarios or [])
            return cases
        return list(self.scenarios or [])

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "fileType": self.file_type}
        if self.suite_id is not None:
            data["suiteId"] = self.suite_id
        if self.subplan:
            data["subStep"] = self.subplan
        if self.step_id is not None:
            data["stepId"] = self.step_id
        if self.scenarios is not None:
            data["scenarios"] = [s.to_dict() for s in self.scenarios]
        if self.plan_steps is not None:
            data["planSteps"] = [s.to_dict() for s in self.plan_steps]
        if self.suite_url:
            data["suiteUrl"] = self.suite_url
        if self.cache:
            data["cache"] = dict(self.cache)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestFile:
        scenarios = data.get("scenarios")
        plan_steps = data.get("planSteps")
        suite_id = data.get("suiteId")
        return cls(
            path=data["path"],
            file_type=data.get("fileType", SCRIPT),
            suite_id=str(suite_id) if suite_id is not None else None,
            subplan=data.get("subStep") or data.get("subplan") or None,
            plan_steps=[cls.from_dict(s) for s in plan_steps] if plan_steps is not None else None,
            scenarios=[Scenario.from_dict(s) for s in scenarios] if scenarios is not None else None,
            suite_url=data.get("suiteUrl"),
            step_id=data.get("stepId"),
            cache=data.get("cache"),
        )


@dataclass
class SuiteDescriptor:
    """A TMS suite and the case ids this engine knows about."""

    id: str
    name: str = ""
    url: str = ""
    file_path: str = ""
    test_cases: dict[str, str] = field(default_factory=dict)


@dataclass
class Section:
    id: str
    name: str = ""


@dataclass
class TestRun:
    id: str
    name: str = ""


@dataclass
class SyncResult:
    """Summary returned after one import_to_tms pass."""

    path: str
    subplan: str | None = None
    suite: SuiteDescriptor | None = None
    created: bool = False
    aborted: bool = False
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    files_written: list[str] = field(default_factory=list)
