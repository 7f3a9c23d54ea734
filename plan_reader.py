"""
plan_reader.py – Resolve a plan workbook's subplan into per-step test cases.

Every enabled plan step names a script and (optionally) a subset of its
scenarios. The referenced scripts are parsed with ScriptReader, filtered to the
requested scenarios and tagged with the step they belong to. The step → script
index is returned with the result instead of being kept around as shared
state, so independent reads never see each other's steps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from openpyxl.worksheet.worksheet import Worksheet

from errors import WorkbookError
from models import TestCaseModel
from script_reader import ScriptReader
from workbook import (
    ARTIFACT_DIR,
    COL_PLAN_SCENARIOS,
    COL_PLAN_SCRIPT,
    FIRST_PLAN_ROW,
    SCRIPT_DIR,
    SCRIPT_EXT,
    cell_text,
    check_standard_structure,
    content_sheets,
    find_project_root,
    is_struck,
    last_data_row,
    open_workbook,
)

logger = logging.getLogger("suite-sync")


@dataclass
class PlanStep:
    """One enabled row of a subplan and the test cases it resolved to."""

    row: int
    index: int
    script_path: str
    scenarios: list[str] = field(default_factory=list)
    cases: list[TestCaseModel] = field(default_factory=list)


@dataclass
class PlanReadResult:
    """Ordered plan steps plus the step → script index used for write-back."""

    plan_path: str
    subplan: str
    steps: list[PlanStep] = field(default_factory=list)

    @property
    def cases(self) -> list[TestCaseModel]:
        return [case for step in self.steps for case in step.cases]

    @property
    def script_by_step(self) -> dict[int, str]:
        return {step.row: step.script_path for step in self.steps}

    def scripts(self) -> list[str]:
        """Distinct script paths in first-referenced order."""
        return list(dict.fromkeys(step.script_path for step in self.steps))


class PlanReader:
    """Reads one subplan of a plan workbook."""

    def __init__(self, script_reader: ScriptReader | None = None) -> None:
        self._script_reader = script_reader or ScriptReader()

    def read(self, path: str | Path, subplan: str) -> PlanReadResult:
        workbook = open_workbook(path)
        try:
            sheet = next((ws for ws in content_sheets(workbook) if ws.title == subplan), None)
            if sheet is None:
                raise WorkbookError(f"Unable to find subplan '{subplan}' in plan file '{path}'")
            rows = self._enabled_rows(sheet, path)
        finally:
            workbook.close()

        check_standard_structure(path, "test plan")
        project_root = find_project_root(path)
        result = PlanReadResult(plan_path=str(path), subplan=subplan)
        parsed: dict[str, list[TestCaseModel]] = {}

        for index, (row, script_value, scenario_value) in enumerate(rows, start=1):
            where = f"ROW {row} of {subplan} in {path}"
            script_path = str(self._resolve_script(script_value, path, project_root))
            if script_path not in parsed:
                try:
                    parsed[script_path] = self._script_reader.read(script_path)
                except WorkbookError as exc:
                    raise WorkbookError(
                        f"Invalid/unreadable test script specified in {where}: {exc}"
                    ) from exc

            available = parsed[script_path]
            wanted = [s.strip() for s in scenario_value.split(",") if s.strip()]
            if wanted:
                selected = [case for case in available if case.name in wanted]
                missing = set(wanted) - {case.name for case in selected}
                if missing:
                    logger.warning("Scenario(s) %s in %s not found in %s",
                                   sorted(missing), where, Path(script_path).name)
            else:
                selected = list(available)

            if not selected:
                raise WorkbookError(f"No valid scenario matched the plan step in {where}")

            result.steps.append(
                PlanStep(
                    row=row,
                    index=index,
                    script_path=script_path,
                    scenarios=[case.name for case in selected],
                    cases=[case.for_plan_step(row, index) for case in selected],
                )
            )

        if not result.steps:
            raise WorkbookError(f"Subplan '{subplan}' in {path} has no enabled plan steps")

        logger.info("Loaded %d plan step(s), %d test case(s) from subplan '%s'",
                    len(result.steps), len(result.cases), subplan)
        return result

    @staticmethod
    def _enabled_rows(sheet: Worksheet, path: str | Path) -> list[tuple[int, str, str]]:
        rows: list[tuple[int, str, str]] = []
        last_row = last_data_row(sheet, FIRST_PLAN_ROW, (COL_PLAN_SCRIPT,))
        for row in range(FIRST_PLAN_ROW, last_row + 1):
            script_cell = sheet.cell(row=row, column=COL_PLAN_SCRIPT)
            if is_struck(script_cell):
                logger.debug("Plan step in ROW %d of %s is disabled.", row, sheet.title)
                continue
            script_value = cell_text(script_cell).strip()
            if not script_value:
                raise WorkbookError(
                    f"Invalid test script specified in ROW {row} of {sheet.title} in {path}"
                )
            scenarios = cell_text(sheet.cell(row=row, column=COL_PLAN_SCENARIOS))
            rows.append((row, script_value, scenarios))
        return rows

    @staticmethod
    def _resolve_script(value: str, plan_path: str | Path, project_root: Path | None) -> Path:
        """Absolute path as is; else the project's script dir, then the plan's dir."""
        if not value.lower().endswith(SCRIPT_EXT):
            value += SCRIPT_EXT
        candidate = Path(value)
        if candidate.is_absolute():
            return candidate
        if project_root is not None:
            in_project = project_root / ARTIFACT_DIR / SCRIPT_DIR / value
            if in_project.is_file():
                return in_project
        return Path(plan_path).resolve().parent / value
