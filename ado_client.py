"""
ado_client.py – Azure DevOps implementation of the TmsClient contract.

Uses the official `azure-devops` Python SDK for work-item deletion and test-run
queries and falls back to raw REST (via `requests`) for Test-Plan / Test-Suite
endpoints that the SDK does not fully expose.

Mapping onto the engine's model:
  ├─ suite    → Test Plan
  └─ section  → static Test Suite directly under the plan's root suite
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Any

import requests
from azure.devops.connection import Connection
from azure.devops.exceptions import AzureDevOpsServiceError
from msrest.authentication import BasicAuthentication
from msrest.exceptions import ClientRequestError

from errors import TmsError
from models import Section, SuiteDescriptor, TestCaseModel, TestRun
from tms_client import TmsClient, step_lines

logger = logging.getLogger("suite-sync")

# runs in any other state are still open
CLOSED_RUN_STATES = {"Completed", "Aborted"}

# ── XML helper for the TCM Steps field ──────────────────────────────────

def _steps_xml(case: TestCaseModel) -> str:
    """Build the XML blob that ADO stores in Microsoft.VSTS.TCM.Steps."""
    lines = step_lines(case)
    root = ET.Element("steps", id="0", last=str(len(lines) + 1))
    for idx, (content, expected) in enumerate(lines, start=2):
        el = ET.SubElement(root, "step", id=str(idx), type="ValidateStep")
        action = ET.SubElement(el, "parameterizedString", isformatted="true")
        action.text = content.replace("\n", "<br>")
        result = ET.SubElement(el, "parameterizedString", isformatted="true")
        result.text = expected
    return ET.tostring(root, encoding="unicode")


def _case_document(case: TestCaseModel, op: str) -> list[dict[str, Any]]:
    return [
        {"op": op, "path": "/fields/System.Title", "value": case.key},
        {"op": op, "path": "/fields/System.Description", "value": case.description},
        {"op": op, "path": "/fields/Microsoft.VSTS.TCM.Steps", "value": _steps_xml(case)},
    ]


# ── Main client ─────────────────────────────────────────────────────────

class ADOClient(TmsClient):
    """Wraps every ADO interaction needed by the sync engine."""

    def __init__(self, org_url: str, pat: str, project: str, timeout: int = 30) -> None:
        super().__init__(project)
        org_url = org_url.rstrip("/")
        creds = BasicAuthentication("", pat)
        self._connection = Connection(base_url=org_url, creds=creds)
        self._wit = self._connection.clients.get_work_item_tracking_client()
        self._test = self._connection.clients.get_test_client()
        self._timeout = timeout

        # REST session for endpoints the SDK does not cover
        self._session = requests.Session()
        self._session.auth = ("", pat)
        self._base = f"{org_url}/{project}"
        self._api = "api-version=7.1-preview"
        self._json_header = {"Content-Type": "application/json"}
        self._patch_header = {"Content-Type": "application/json-patch+json"}

        # section (static suite) id → owning plan id
        self._plan_by_section: dict[str, str] = {}

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base}/_apis/{path}{'&' if '?' in path else '?'}{self._api}"
        kwargs.setdefault("headers", self._json_header)
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except (requests.RequestException, ValueError) as exc:
            raise TmsError(operation, exc) from exc

    def _suite_url(self, plan_id: str) -> str:
        return f"{self._base}/_testPlans/define?planId={plan_id}"

    def _root_suite_id(self, plan_id: str) -> str:
        data = self._request(f"Reading test plan {plan_id}", "GET", f"testplan/Plans/{plan_id}")
        return str(data["rootSuite"]["id"])

    # ── Test Plan (suite) / static suite (section) ──────────────────────

    def create_suite(self, name: str, description: str) -> SuiteDescriptor:
        logger.info("Creating test plan '%s' in project %s", name, self.project_id)
        data = self._request(f"Creating test plan '{name}'", "POST", "testplan/plans",
                             json={"name": name, "description": description})
        plan_id = str(data["id"])
        return SuiteDescriptor(id=plan_id, name=name, url=self._suite_url(plan_id))

    def update_suite(self, suite_id: str, description: str) -> SuiteDescriptor:
        logger.info("Updating test plan %s", suite_id)
        data = self._request(f"Updating test plan {suite_id}", "PATCH",
                             f"testplan/plans/{suite_id}", json={"description": description})
        return SuiteDescriptor(id=str(suite_id), name=data.get("name", ""),
                               url=self._suite_url(suite_id))

    def add_section(self, name: str, suite_id: str) -> str:
        root_id = self._root_suite_id(suite_id)
        body = {
            "suiteType": "staticTestSuite",
            "name": name,
            "parentSuite": {"id": int(root_id)},
        }
        data = self._request(f"Creating suite '{name}'", "POST",
                             f"testplan/Plans/{suite_id}/Suites", json=body)
        section_id = str(data["id"])
        self._plan_by_section[section_id] = str(suite_id)
        logger.info("Created suite '%s' (id=%s)", name, section_id)
        return section_id

    def get_sections(self, suite_id: str) -> list[Section]:
        root_id = self._root_suite_id(suite_id)
        data = self._request(f"Listing suites of test plan {suite_id}", "GET",
                             f"testplan/Plans/{suite_id}/Suites")
        sections = [
            Section(id=str(s["id"]), name=s.get("name", ""))
            for s in data.get("value", []) or []
            if str(s.get("parentSuite", {}).get("id")) == root_id
        ]
        for section in sections:
            self._plan_by_section[section.id] = str(suite_id)
        return sections

    # ── Test Case work items ────────────────────────────────────────────

    def add_cases(self, section_id: str, cases: list[TestCaseModel]) -> dict[str, str]:
        plan_id = self._plan_by_section.get(str(section_id))
        if plan_id is None:
            raise TmsError(f"Adding test cases to suite {section_id}", "owning test plan is unknown")

        added: dict[str, str] = {}
        for case in cases:
            data = self._request(f"Creating test case '{case.key}'", "POST",
                                 "wit/workitems/$Test%20Case",
                                 json=_case_document(case, "add"), headers=self._patch_header)
            case_id = str(data["id"])
            self._request(f"Adding test case {case_id} to suite {section_id}", "POST",
                          f"testplan/Plans/{plan_id}/Suites/{section_id}/TestCase",
                          json=[{"workItem": {"id": int(case_id)}}])
            added[case.key] = case_id
            logger.info("Created Test Case #%s  →  '%s'", case_id, case.key)
        return added

    def update_case(self, case_id: str, case: TestCaseModel, dry_run: bool = False) -> dict[str, str]:
        if dry_run:
            logger.info("[dry-run] would update Test Case #%s  →  '%s'", case_id, case.key)
            return {case.key: str(case_id)}
        self._request(f"Updating test case '{case.key}'", "PATCH", f"wit/workitems/{case_id}",
                      json=_case_document(case, "replace"), headers=self._patch_header)
        logger.info("Updated Test Case #%s  →  '%s'", case_id, case.key)
        return {case.key: str(case_id)}

    def delete(self, case_ids: list[str]) -> None:
        for case_id in case_ids:
            try:
                self._wit.delete_work_item(int(case_id), project=self.project_id)
            except (AzureDevOpsServiceError, ClientRequestError) as exc:
                raise TmsError(f"Deleting test case {case_id}", exc) from exc
            logger.info("Deleted Test Case #%s", case_id)

    def update_case_order(self, suite_id: str, section_id: str, ordered_ids: str) -> None:
        entries = [
            {"id": int(cid), "sequenceNumber": seq, "suiteEntryType": "testCase"}
            for seq, cid in enumerate(c.strip() for c in ordered_ids.split(",") if c.strip())
        ]
        self._request(f"Reordering test cases of suite {section_id}", "PATCH",
                      f"testplan/suiteentry/{section_id}", json=entries)
        logger.info("Updated test case order of test plan %s", suite_id)

    # ── Test runs ───────────────────────────────────────────────────────

    def get_existing_active_runs(self, suite_id: str) -> list[TestRun]:
        try:
            runs = self._test.get_test_runs(
                self.project_id, plan_id=int(suite_id), include_run_details=True
            )
        except (AzureDevOpsServiceError, ClientRequestError) as exc:
            raise TmsError(f"Retrieving active runs of test plan {suite_id}", exc) from exc
        return [
            TestRun(id=str(run.id), name=run.name or "")
            for run in runs or []
            if run.state not in CLOSED_RUN_STATES
        ]

    def close_run(self, run_id: str) -> None:
        self._request(f"Closing test run {run_id}", "PATCH", f"test/runs/{run_id}",
                      json={"state": "Completed"})
        logger.info("Closed test run %s", run_id)
