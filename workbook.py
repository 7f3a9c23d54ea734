"""
workbook.py – openpyxl access layer and the workbook layout the engine relies on.

Script workbook:
  ├─ one worksheet per scenario ('#'-prefixed sheets are system sheets)
  ├─ A2 description, H2 TMS reference ("test id")
  └─ steps from row 5: A activity | B description | C target | D command
                       | E..I parameters | J flow controls

Plan workbook:
  ├─ one worksheet per subplan, H2 receives the suite id
  └─ steps from row 5: A description | B test script | C scenarios
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePath
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from errors import WorkbookError

logger = logging.getLogger("suite-sync")

SCRIPT_EXT = ".xlsx"
SYSTEM_SHEET_PREFIX = "#"
ARTIFACT_DIR = "artifact"
SCRIPT_DIR = "script"
PLAN_DIR = "plan"

ADDR_DESCRIPTION = "A2"
ADDR_TMS_REFERENCE = "H2"

FIRST_STEP_ROW = 5
COL_ACTIVITY = 1
COL_DESCRIPTION = 2
COL_TARGET = 3
COL_COMMAND = 4
COL_PARAMS = range(5, 10)
COL_FLOW_CONTROLS = 10

FIRST_PLAN_ROW = 5
COL_PLAN_DESCRIPTION = 1
COL_PLAN_SCRIPT = 2
COL_PLAN_SCENARIOS = 3


# ── Reading ─────────────────────────────────────────────────────────────

def open_workbook(path: str | Path) -> Workbook:
    """Load a workbook, converting every openpyxl/IO failure into WorkbookError."""
    file = Path(path)
    if not file.is_file():
        raise WorkbookError(f"The path specified does not exist or is not a file: {file}")
    try:
        return load_workbook(file)
    except (OSError, InvalidFileException, BadZipFile, KeyError, ValueError) as exc:
        raise WorkbookError(f"Unable to read workbook {file}: {exc}") from exc


def cell_text(cell: Cell) -> str:
    """Cell value as text, untrimmed; blank cells read as ''."""
    value = cell.value
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_struck(cell: Cell) -> bool:
    """A struck-through cell marks its row as disabled."""
    return bool(cell.font is not None and cell.font.strike)


def last_data_row(sheet: Worksheet, first_row: int, columns: tuple[int, ...]) -> int:
    """Last row at or after *first_row* with a non-blank value in any of *columns*.

    Returns ``first_row - 1`` when the area is empty.
    """
    for row in range(sheet.max_row, first_row - 1, -1):
        if any(cell_text(sheet.cell(row=row, column=col)).strip() for col in columns):
            return row
    return first_row - 1


def content_sheets(workbook: Workbook) -> list[Worksheet]:
    """Scenario sheets of a script, or subplan sheets of a plan."""
    return [ws for ws in workbook.worksheets if not ws.title.startswith(SYSTEM_SHEET_PREFIX)]


# ── Project layout ──────────────────────────────────────────────────────

def find_project_root(path: str | Path) -> Path | None:
    """Directory holding the 'artifact' folder that contains *path*, if any."""
    for parent in Path(path).resolve().parents:
        if parent.name == ARTIFACT_DIR:
            return parent.parent
    return None


def relative_artifact_path(path: str | Path) -> str:
    """Path relative to the project root, always starting with 'artifact/'."""
    parts = PurePath(Path(path).resolve()).parts
    if ARTIFACT_DIR not in parts:
        return PurePath(path).as_posix()
    idx = len(parts) - 1 - parts[::-1].index(ARTIFACT_DIR)
    return "/".join(parts[idx:])


def check_standard_structure(path: str | Path, kind: str) -> bool:
    """Warn (never fail) when *path* sits outside a standard project tree."""
    if find_project_root(path) is None:
        logger.warning(
            "Specified %s (%s) is not following the standard project structure; "
            "related directories will not be resolved.",
            kind,
            path,
        )
        return False
    return True


# ── Writing ─────────────────────────────────────────────────────────────

def save_replace(workbook: Workbook, path: str | Path) -> None:
    """Save to a sibling temp file, then atomically replace *path*."""
    target = Path(path)
    fd, tmp_name = tempfile.mkstemp(suffix=SCRIPT_EXT, prefix="~sync-", dir=target.parent)
    os.close(fd)
    try:
        workbook.save(tmp_name)
        os.replace(tmp_name, target)
    except OSError as exc:
        Path(tmp_name).unlink(missing_ok=True)
        raise WorkbookError(f"Unable to save workbook {target}: {exc}") from exc
