"""
workbook_writer.py – Write suite / case ids back into the source workbooks.

A scenario's TMS reference cell holds one ``<suiteId> :: <caseId>`` line per
suite the scenario was ever synchronized to. A plan's subplan sheet receives
the bare suite id.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from errors import WorkbookError
from workbook import ADDR_TMS_REFERENCE, cell_text, open_workbook, save_replace

logger = logging.getLogger("suite-sync")
err_console = Console(stderr=True)

REFERENCE_SEPARATOR = " :: "


def merge_tms_reference(existing_text: str, suite_id: str, case_id: str) -> str:
    """Replace the line for *suite_id* (or append one), keeping other suites' lines."""
    new_line = f"{suite_id}{REFERENCE_SEPARATOR}{case_id}"
    lines: list[str] = []
    replaced = False
    for line in (existing_text or "").splitlines():
        if not line.strip():
            continue
        if line.split("::", 1)[0].strip() == str(suite_id):
            if not replaced:
                lines.append(new_line)
                replaced = True
            continue
        lines.append(line.strip())
    if not replaced:
        lines.append(new_line)
    return "\n".join(lines) + "\n"


class WorkbookWriter:
    """Buffers every cell change of a workbook and commits it with one save."""

    def write_script(self, path: str | Path, suite_id: str, case_ids: dict[str, str]) -> bool:
        """Merge ``suite_id :: case_id`` into each scenario's reference cell.

        *case_ids* maps scenario (sheet) name to the case id text. Returns
        False when every cell already held the reference and nothing was saved.
        """
        workbook = open_workbook(path)
        changed = False
        try:
            for name, case_id in case_ids.items():
                if name not in workbook.sheetnames:
                    raise WorkbookError(f"Scenario '{name}' not found in {Path(path).name}")
                cell = workbook[name][ADDR_TMS_REFERENCE]
                merged = merge_tms_reference(cell_text(cell), suite_id, case_id)
                if merged != cell_text(cell):
                    cell.value = merged
                    changed = True
            if changed:
                self._commit(workbook, path, [(name, f"{suite_id}{REFERENCE_SEPARATOR}{cid}")
                                              for name, cid in case_ids.items()])
        finally:
            workbook.close()

        if changed:
            logger.info("Updated TMS references in %s", Path(path).name)
        return changed

    def write_plan_suite_id(self, plan_path: str | Path, subplan: str, suite_id: str) -> bool:
        workbook = open_workbook(plan_path)
        try:
            if subplan not in workbook.sheetnames:
                raise WorkbookError(f"Unable to find subplan '{subplan}' in plan file '{plan_path}'")
            cell = workbook[subplan][ADDR_TMS_REFERENCE]
            if cell_text(cell).strip() == str(suite_id):
                return False
            cell.value = str(suite_id)
            self._commit(workbook, plan_path, [(subplan, str(suite_id))])
        finally:
            workbook.close()

        logger.info("Recorded suite id %s in subplan '%s' of %s", suite_id, subplan, Path(plan_path).name)
        return True

    @staticmethod
    def _commit(workbook, path: str | Path, references: list[tuple[str, str]]) -> None:
        try:
            save_replace(workbook, path)
        except WorkbookError:
            logger.error("Unable to save %s; apply these references manually:", path)
            table = Table(title=str(path))
            table.add_column("Sheet", style="cyan")
            table.add_column("TMS reference")
            for sheet, reference in references:
                table.add_row(sheet, reference)
            err_console.print(table)
            raise
