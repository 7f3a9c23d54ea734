"""
script_reader.py – Parse a script workbook into TestCaseModel entries.

Each scenario sheet becomes one TestCaseModel. Rows below the header are
grouped into activities: a non-blank activity cell opens a new group and every
following row belongs to it until the next activity or the end of data.
"""

from __future__ import annotations

import logging
from pathlib import Path

from openpyxl.worksheet.worksheet import Worksheet

from config import Settings
from errors import WorkbookError
from models import TestCaseModel, TestStepModel
from workbook import (
    ADDR_DESCRIPTION,
    COL_ACTIVITY,
    COL_COMMAND,
    COL_DESCRIPTION,
    COL_FLOW_CONTROLS,
    COL_PARAMS,
    COL_TARGET,
    FIRST_STEP_ROW,
    cell_text,
    check_standard_structure,
    content_sheets,
    is_struck,
    last_data_row,
    open_workbook,
)

logger = logging.getLogger("suite-sync")


def _one_line(text: str) -> str:
    return " ".join(text.split())


class ScriptReader:
    """Reads scenarios and their activity/step grouping from a script workbook."""

    def __init__(self, skip_prefix: str | None = None) -> None:
        prefix = Settings.SKIP_SCENARIO_PREFIX if skip_prefix is None else skip_prefix
        self._skip_prefix = prefix.lower()

    def read(self, path: str | Path) -> list[TestCaseModel]:
        """Return one TestCaseModel per valid scenario, in sheet order."""
        workbook = open_workbook(path)
        check_standard_structure(path, "test script")
        cases: list[TestCaseModel] = []
        try:
            for sheet in content_sheets(workbook):
                if self._skip_prefix and sheet.title.lower().startswith(self._skip_prefix):
                    logger.debug("Skipping scenario '%s' (reserved prefix).", sheet.title)
                    continue
                cases.append(self._parse_scenario(sheet, path))
        finally:
            workbook.close()

        logger.info("Loaded %d scenario(s) from %s", len(cases), Path(path).name)
        return cases

    def _parse_scenario(self, sheet: Worksheet, path: str | Path) -> TestCaseModel:
        case = TestCaseModel(
            name=sheet.title,
            script_path=str(path),
            description=cell_text(sheet[ADDR_DESCRIPTION]).strip(),
        )
        scenario_ref = f"Error found in [{Path(path).name}][{sheet.title}]"
        last_row = last_data_row(sheet, FIRST_STEP_ROW, (COL_TARGET, COL_COMMAND))
        current: str | None = None

        for row in range(FIRST_STEP_ROW, last_row + 1):
            activity_cell = sheet.cell(row=row, column=COL_ACTIVITY)
            activity = cell_text(activity_cell)
            error_prefix = f"{scenario_ref}[{activity_cell.coordinate}]: "

            if activity and not activity.strip():
                raise WorkbookError(f"{error_prefix}Found invalid, space-only activity name")
            if activity != activity.strip():
                raise WorkbookError(
                    f"{error_prefix}Found leading/trailing non-printable characters "
                    f"in activity '{activity}'"
                )
            if current is None and not activity:
                raise WorkbookError(
                    f"{error_prefix}Invalid format; first row must contain valid activity name"
                )

            if activity:
                activity = _one_line(activity)
                if activity in case.activities:
                    raise WorkbookError(f"{error_prefix}Found duplicate activity name '{activity}'")
                case.activities.append(activity)
                current = activity

            if is_struck(sheet.cell(row=row, column=COL_COMMAND)):
                continue

            params = [cell_text(sheet.cell(row=row, column=col)) for col in COL_PARAMS]
            while params and not params[-1]:
                params.pop()
            case.steps.append(
                TestStepModel(
                    activity=current,
                    row=row,
                    description=cell_text(sheet.cell(row=row, column=COL_DESCRIPTION)),
                    target=cell_text(sheet.cell(row=row, column=COL_TARGET)),
                    command=cell_text(sheet.cell(row=row, column=COL_COMMAND)),
                    params=params,
                    flow_controls=cell_text(sheet.cell(row=row, column=COL_FLOW_CONTROLS)),
                )
            )

        if not case.steps:
            logger.warning("Scenario '%s' has no enabled steps.", sheet.title)
        return case
