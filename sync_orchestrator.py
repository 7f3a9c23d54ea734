"""
sync_orchestrator.py – import_to_tms(): the single entry point of a sync.

Flow:
  1. parse the script, or the plan's subplan
  2. look the file up in the project manifest
  3. no entry  → SuiteCreator   (first-time upload)
     entry     → active-run guard, then SuiteReconciler
  4. persist the new entry in the manifest
  5. write case ids into the script workbook(s) and the suite id into the plan
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from config import Settings
from errors import WorkbookError
from manifest import ProjectManifest
from models import PLAN, SCRIPT, Scenario, SuiteDescriptor, SyncResult, TestCaseModel, TestFile, TestRun
from plan_reader import PlanReader, PlanReadResult
from script_reader import ScriptReader
from suite_creator import SuiteCreator
from suite_reconciler import ReconcileResult, RunConflictChoice, SuiteReconciler, prompt_run_conflict
from tms_client import TmsClient, create_tms_client
from workbook import relative_artifact_path
from workbook_writer import WorkbookWriter

logger = logging.getLogger("suite-sync")


class SyncOrchestrator:
    """Decides create-vs-update for one file and persists the outcome."""

    def __init__(
        self,
        manifest: ProjectManifest | None = None,
        client_factory: Callable[[str], TmsClient] = create_tms_client,
        script_reader: ScriptReader | None = None,
        plan_reader: PlanReader | None = None,
        writer: WorkbookWriter | None = None,
        chooser: Callable[[list[TestRun]], RunConflictChoice | str] = prompt_run_conflict,
        close_runs: bool | None = None,
    ) -> None:
        self._manifest = manifest or ProjectManifest()
        self._client_factory = client_factory
        self._script_reader = script_reader or ScriptReader()
        self._plan_reader = plan_reader or PlanReader(self._script_reader)
        self._writer = writer or WorkbookWriter()
        self._chooser = chooser
        self._close_runs = Settings.TMS_CLOSE_PREVIOUS_RUNS if close_runs is None else close_runs

    def import_to_tms(
        self,
        path: str | Path,
        subplan: str | None = None,
        scenarios: list[str] | None = None,
    ) -> SyncResult:
        if subplan:
            if scenarios:
                raise WorkbookError("Updating selected scenarios is only supported for test scripts")
            return self._import_plan(Path(path), subplan)
        return self._import_script(Path(path), scenarios)

    # ── script ──────────────────────────────────────────────────────────

    def _import_script(self, path: Path, scenarios: list[str] | None) -> SyncResult:
        cases = self._script_reader.read(path)
        relative = relative_artifact_path(path)
        project_id, entry = self._manifest.lookup(path)
        self._check_file_type(entry, SCRIPT, relative)
        tms = self._client_factory(project_id)
        result = SyncResult(path=relative)

        if entry is None or not entry.suite_id:
            if scenarios:
                logger.warning("No suite recorded for %s yet; uploading every scenario", relative)
            suite = SuiteCreator(tms).upload_script(cases, path.stem, relative)
            result.created = True
            result.added = [case.key for case in cases]
            outcome = None
        else:
            reconciler = SuiteReconciler(tms, self._chooser, self._close_runs)
            if not reconciler.should_update_suite(entry.suite_id):
                result.aborted = True
                return result
            suite = self._existing_suite(entry, path.stem, relative)
            outcome = reconciler.reconcile_script(suite, cases, entry.existing_cases(), entry.cache, scenarios)
            self._collect(result, outcome)

        result.suite = suite
        self._manifest.write(path, TestFile(
            path=relative,
            file_type=SCRIPT,
            suite_id=suite.id,
            scenarios=[Scenario(test_case=c.key, test_case_id=suite.test_cases[c.key], name=c.name) for c in cases],
            suite_url=suite.url or None,
            cache=self._cache(cases, entry, outcome, restricted=bool(scenarios)),
        ))

        case_ids = {case.name: suite.test_cases[case.key] for case in cases}
        if self._writer.write_script(path, suite.id, case_ids):
            result.files_written.append(str(path))
        return result

    # ── plan ────────────────────────────────────────────────────────────

    def _import_plan(self, path: Path, subplan: str) -> SyncResult:
        plan = self._plan_reader.read(path, subplan)
        relative = relative_artifact_path(path)
        project_id, entry = self._manifest.lookup(path, subplan)
        self._check_file_type(entry, PLAN, relative)
        tms = self._client_factory(project_id)
        result = SyncResult(path=relative, subplan=subplan)
        suite_name = f"{path.stem}/{subplan}"

        if entry is None or not entry.suite_id:
            suite = SuiteCreator(tms).upload_plan(plan, suite_name, relative)
            result.created = True
            result.added = [case.key for case in plan.cases]
            outcome = None
        else:
            reconciler = SuiteReconciler(tms, self._chooser, self._close_runs)
            if not reconciler.should_update_suite(entry.suite_id):
                result.aborted = True
                return result
            suite = self._existing_suite(entry, suite_name, relative)
            outcome = reconciler.reconcile_plan(suite, plan, entry.existing_cases(), entry.cache)
            self._collect(result, outcome)

        result.suite = suite
        self._manifest.write(path, TestFile(
            path=relative,
            file_type=PLAN,
            suite_id=suite.id,
            subplan=subplan,
            plan_steps=self._plan_step_records(plan, suite),
            suite_url=suite.url or None,
            cache=self._cache(plan.cases, entry, outcome, restricted=False),
        ))

        for script in plan.scripts():
            if self._writer.write_script(script, suite.id, self._script_case_ids(plan, script, suite)):
                result.files_written.append(script)
        if self._writer.write_plan_suite_id(path, subplan, suite.id):
            result.files_written.append(str(path))
        return result

    @staticmethod
    def _plan_step_records(plan: PlanReadResult, suite: SuiteDescriptor) -> list[TestFile]:
        """One record per distinct script, holding every step that references it."""
        records = []
        for script in plan.scripts():
            steps = [step for step in plan.steps if step.script_path == script]
            records.append(TestFile(
                path=relative_artifact_path(script),
                file_type=SCRIPT,
                step_id=",".join(str(step.row) for step in steps),
                scenarios=[
                    Scenario(test_case=case.key, test_case_id=suite.test_cases[case.key], name=case.name)
                    for step in steps for case in step.cases
                ],
            ))
        return records

    @staticmethod
    def _script_case_ids(plan: PlanReadResult, script: str, suite: SuiteDescriptor) -> dict[str, str]:
        # a scenario used by several steps gets all of its case ids on one line
        ids: dict[str, list[str]] = {}
        for step in plan.steps:
            if step.script_path != script:
                continue
            for case in step.cases:
                ids.setdefault(case.name, []).append(suite.test_cases[case.key])
        return {name: ",".join(case_ids) for name, case_ids in ids.items()}

    # ── helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _check_file_type(entry: TestFile | None, expected: str, relative: str) -> None:
        """A recorded entry must be of the kind being synchronized."""
        if entry is not None and entry.file_type != expected:
            raise WorkbookError(
                f"{relative} is recorded as a {entry.file_type} in the project manifest; "
                f"it cannot be synchronized as a {expected}"
            )

    @staticmethod
    def _existing_suite(entry: TestFile, name: str, relative: str) -> SuiteDescriptor:
        return SuiteDescriptor(
            id=entry.suite_id,
            name=name,
            url=entry.suite_url or "",
            file_path=relative,
            test_cases={s.test_case: s.test_case_id for s in entry.existing_cases()},
        )

    @staticmethod
    def _collect(result: SyncResult, outcome: ReconcileResult) -> None:
        result.added = outcome.added
        result.updated = outcome.updated
        result.deleted = outcome.deleted

    @staticmethod
    def _cache(
        cases: list[TestCaseModel],
        entry: TestFile | None,
        outcome: ReconcileResult | None,
        restricted: bool,
    ) -> dict[str, str]:
        """Fingerprints of what the TMS now holds for each case."""
        if not restricted or outcome is None:
            return {case.key: case.fingerprint for case in cases}

        previous = (entry.cache if entry else None) or {}
        touched = set(outcome.added) | set(outcome.updated)
        cache: dict[str, str] = {}
        for case in cases:
            if case.key in touched:
                cache[case.key] = case.fingerprint
            elif case.key in previous:
                cache[case.key] = previous[case.key]
        return cache
