"""
suite_reconciler.py – Steady-state synchronization of an existing suite.

One pass, given the freshly parsed cases and the manifest snapshot:

  1. delete   – recorded cases whose key is gone from the workbook
  2. add      – parsed cases with no recorded counterpart (single section only)
  3. update   – the requested scenarios, or every case whose content drifted
  4. reorder  – submit the workbook order as the suite's canonical case order

The snapshot is trusted for the whole pass; the TMS is never re-read to
discover its current cases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from errors import SuiteStructureError, TmsError
from models import Scenario, SuiteDescriptor, TestCaseModel, TestRun
from plan_reader import PlanReadResult
from tms_client import TmsClient, suite_description

logger = logging.getLogger("suite-sync")
console = Console()


class RunConflictChoice(Enum):
    """Operator decision when the suite still has active runs."""

    PROCEED = "1"
    CLOSE_RUNS = "2"
    ABORT = "3"

    @classmethod
    def parse(cls, answer: RunConflictChoice | str | None) -> RunConflictChoice:
        if isinstance(answer, cls):
            return answer
        try:
            return cls(str(answer).strip())
        except ValueError:
            return cls.ABORT


def prompt_run_conflict(runs: list[TestRun]) -> str:
    """Show the active runs and ask the operator how to continue."""
    table = Table(title="Active test runs", show_lines=False)
    table.add_column("Run id", style="cyan")
    table.add_column("Name")
    for run in runs:
        table.add_row(run.id, run.name)
    console.print(table)
    console.print(
        "Updating the suite may affect these runs.\n"
        "  [bold]1[/] proceed anyway\n"
        "  [bold]2[/] close the active runs, then proceed\n"
        "  [bold]3[/] exit"
    )
    return Prompt.ask("Enter your choice", default=RunConflictChoice.ABORT.value)


# ── Delta ───────────────────────────────────────────────────────────────

@dataclass
class CaseDelta:
    to_delete: list[Scenario] = field(default_factory=list)
    to_add: list[TestCaseModel] = field(default_factory=list)
    unchanged: list[TestCaseModel] = field(default_factory=list)


def compute_delta(current: list[TestCaseModel], existing: list[Scenario]) -> CaseDelta:
    """Partition both sides by composite key."""
    current_keys = {case.key for case in current}
    existing_keys = {scenario.test_case for scenario in existing}
    return CaseDelta(
        to_delete=[s for s in existing if s.test_case not in current_keys],
        to_add=[c for c in current if c.key not in existing_keys],
        unchanged=[c for c in current if c.key in existing_keys],
    )


@dataclass
class ReconcileResult:
    test_cases: dict[str, str] = field(default_factory=dict)
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    order: str = ""


# ── Reconciler ──────────────────────────────────────────────────────────

class SuiteReconciler:
    def __init__(
        self,
        tms: TmsClient,
        chooser: Callable[[list[TestRun]], RunConflictChoice | str] = prompt_run_conflict,
        close_runs: bool = False,
    ) -> None:
        self._tms = tms
        self._chooser = chooser
        self._close_runs = close_runs

    def should_update_suite(self, suite_id: str) -> bool:
        """Active-run guard; False means the operator chose to exit."""
        runs = self._tms.get_existing_active_runs(suite_id)
        if not runs:
            return True

        logger.warning("Suite %s has %d active run(s)", suite_id, len(runs))
        if self._close_runs:
            choice = RunConflictChoice.CLOSE_RUNS
        else:
            choice = RunConflictChoice.parse(self._chooser(runs))

        if choice is RunConflictChoice.PROCEED:
            logger.info("Proceeding with active runs left open")
            return True
        if choice is RunConflictChoice.CLOSE_RUNS:
            for run in runs:
                self._tms.close_run(run.id)
            return True
        logger.info("Exiting without updating suite %s", suite_id)
        return False

    def reconcile_script(
        self,
        suite: SuiteDescriptor,
        cases: list[TestCaseModel],
        existing: list[Scenario],
        cache: dict[str, str] | None = None,
        scenarios_to_update: list[str] | None = None,
    ) -> ReconcileResult:
        requested = list(dict.fromkeys(scenarios_to_update or []))
        if requested:
            self._check_update_targets(requested, cases, existing)
        return self._reconcile(suite, cases, existing, cache, requested)

    def reconcile_plan(
        self,
        suite: SuiteDescriptor,
        plan: PlanReadResult,
        existing: list[Scenario],
        cache: dict[str, str] | None = None,
    ) -> ReconcileResult:
        return self._reconcile(suite, plan.cases, existing, cache, [], groups=[s.cases for s in plan.steps])

    # ── phases ──────────────────────────────────────────────────────────

    def _reconcile(
        self,
        suite: SuiteDescriptor,
        cases: list[TestCaseModel],
        existing: list[Scenario],
        cache: dict[str, str] | None,
        requested: list[str],
        groups: list[list[TestCaseModel]] | None = None,
    ) -> ReconcileResult:
        result = ReconcileResult()
        self._tms.update_suite(suite.id, suite_description(suite.file_path))

        delta = compute_delta(cases, existing)
        ids = {s.test_case: s.test_case_id for s in existing}

        # delete
        if delta.to_delete:
            doomed = [s.test_case_id for s in delta.to_delete]
            logger.info("Deleting %d test case(s) removed from the workbook", len(doomed))
            self._tms.delete(doomed)
            for scenario in delta.to_delete:
                ids.pop(scenario.test_case, None)
                result.deleted.append(scenario.test_case)

        # add
        section_id = None
        if delta.to_add:
            section_id = self._single_section(suite.id)
            added = self._tms.add_cases(section_id, delta.to_add)
            for case in delta.to_add:
                if case.key not in added:
                    raise TmsError(f"Adding test cases to suite {suite.id}", f"no id returned for '{case.key}'")
                ids[case.key] = added[case.key]
                result.added.append(case.key)

        # update
        if requested:
            targets = [case for case in cases if case.name in requested]
        else:
            known = cache or {}
            targets = [case for case in delta.unchanged if known.get(case.key) != case.fingerprint]
        for case in targets:
            self._tms.update_case(ids[case.key], case)
            result.updated.append(case.key)

        # reorder
        if cases:
            if section_id is None:
                section_id = self._single_section(suite.id)
            result.order = ",".join(ids[case.key] for group in (groups or [cases]) for case in group)
            self._tms.update_case_order(suite.id, section_id, result.order)

        result.test_cases = {case.key: ids[case.key] for case in cases}
        suite.test_cases = dict(result.test_cases)
        logger.info("Suite %s: %d added, %d updated, %d deleted",
                    suite.id, len(result.added), len(result.updated), len(result.deleted))
        return result

    def _single_section(self, suite_id: str) -> str:
        sections = self._tms.get_sections(suite_id)
        if len(sections) != 1:
            raise SuiteStructureError(
                f"Suite {suite_id} must contain exactly one section, found {len(sections)}"
            )
        return sections[0].id

    @staticmethod
    def _check_update_targets(requested: list[str], cases: list[TestCaseModel], existing: list[Scenario]) -> None:
        current = {case.name for case in cases}
        recorded = {s.test_case for s in existing}
        for name in requested:
            if name not in current:
                raise SuiteStructureError(f"Scenario '{name}' to update is not present in the script")
            if name not in recorded:
                raise SuiteStructureError(
                    f"Scenario '{name}' has no existing test case; only existing cases can be updated"
                )
