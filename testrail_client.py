"""
testrail_client.py – TestRail implementation of the TmsClient contract.

Talks to the TestRail v2 REST API (``index.php?/api/v2/<endpoint>``) through a
``requests`` session with basic auth (user + API key).
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from errors import ConfigError, TmsError
from models import Section, SuiteDescriptor, TestCaseModel, TestRun
from tms_client import TmsClient, step_lines

logger = logging.getLogger("suite-sync")


def _case_payload(case: TestCaseModel) -> dict[str, Any]:
    return {
        "title": case.key,
        "custom_preconds": case.description,
        "custom_steps_separated": [
            {"content": content, "expected": expected}
            for content, expected in step_lines(case)
        ],
    }


class TestRailClient(TmsClient):
    """Wraps every TestRail call the sync engine needs."""

    def __init__(
        self,
        base_url: str,
        user: str,
        api_key: str,
        project_id: str,
        timeout: int = 30,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(project_id)
        if not base_url:
            raise ConfigError("TestRail base URL is required")
        if not api_key:
            raise ConfigError("TestRail API key is required")

        self._base = base_url.rstrip("/")
        self._api = f"{self._base}/index.php?/api/v2/"
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.auth = (user, api_key)
        self._session.headers.update({"Content-Type": "application/json"})

    # ── HTTP helpers ────────────────────────────────────────────────────

    def _get(self, operation: str, endpoint: str, params: dict | None = None) -> Any:
        try:
            resp = self._session.get(self._api + endpoint, params=params, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise TmsError(operation, exc) from exc

    def _post(self, operation: str, endpoint: str, body: dict | None = None) -> Any:
        try:
            resp = self._session.post(self._api + endpoint, json=body or {}, timeout=self._timeout)
            resp.raise_for_status()
            return resp.json() if resp.content else {}
        except (requests.RequestException, ValueError) as exc:
            raise TmsError(operation, exc) from exc

    def _suite_url(self, suite_id: str) -> str:
        return f"{self._base}/index.php?/suites/view/{suite_id}"

    # ── Suites / sections ───────────────────────────────────────────────

    def create_suite(self, name: str, description: str) -> SuiteDescriptor:
        logger.info("Creating suite '%s' for project %s", name, self.project_id)
        data = self._post(f"Creating suite '{name}'", f"add_suite/{self.project_id}",
                          {"name": name, "description": description})
        suite_id = str(data["id"])
        return SuiteDescriptor(id=suite_id, name=name, url=self._suite_url(suite_id))

    def update_suite(self, suite_id: str, description: str) -> SuiteDescriptor:
        logger.info("Updating suite %s", suite_id)
        data = self._post(f"Updating suite {suite_id}", f"update_suite/{suite_id}",
                          {"description": description})
        return SuiteDescriptor(id=str(suite_id), name=data.get("name", ""),
                               url=self._suite_url(suite_id))

    def add_section(self, name: str, suite_id: str) -> str:
        logger.info("Creating section '%s' in suite %s", name, suite_id)
        data = self._post(
            f"Creating section '{name}'",
            f"add_section/{self.project_id}",
            {"suite_id": suite_id, "name": name,
             "description": f"Section corresponding to: {name}"},
        )
        return str(data["id"])

    def get_sections(self, suite_id: str) -> list[Section]:
        data = self._get(f"Retrieving sections of suite {suite_id}",
                         f"get_sections/{self.project_id}", {"suite_id": suite_id})
        # paginated responses wrap the list
        if isinstance(data, dict):
            data = data.get("sections", [])
        return [Section(id=str(s["id"]), name=s.get("name", "")) for s in data]

    # ── Cases ───────────────────────────────────────────────────────────

    def add_cases(self, section_id: str, cases: list[TestCaseModel]) -> dict[str, str]:
        added: dict[str, str] = {}
        for case in cases:
            data = self._post(f"Adding test case '{case.key}'", f"add_case/{section_id}",
                              _case_payload(case))
            added[case.key] = str(data["id"])
            logger.info("Added test case '%s' with id %s", case.key, data["id"])
        return added

    def update_case(self, case_id: str, case: TestCaseModel, dry_run: bool = False) -> dict[str, str]:
        if dry_run:
            logger.info("[dry-run] would update test case '%s' (%s)", case.key, case_id)
            return {case.key: str(case_id)}
        data = self._post(f"Updating test case '{case.key}'", f"update_case/{case_id}",
                          _case_payload(case))
        logger.info("Updated test case '%s' with id %s", case.key, case_id)
        return {case.key: str(data.get("id", case_id))}

    def delete(self, case_ids: list[str]) -> None:
        for case_id in case_ids:
            self._post(f"Deleting test case {case_id}", f"delete_case/{case_id}")
            logger.info("Deleted test case %s", case_id)

    def update_case_order(self, suite_id: str, section_id: str, ordered_ids: str) -> None:
        logger.info("Reordering test cases in suite %s", suite_id)
        self._post(f"Reordering test cases of suite {suite_id}",
                   f"move_cases_to_section/{section_id}",
                   {"suite_id": suite_id, "case_ids": ordered_ids})

    # ── Runs ────────────────────────────────────────────────────────────

    def get_existing_active_runs(self, suite_id: str) -> list[TestRun]:
        data = self._get(f"Retrieving active runs of suite {suite_id}",
                         f"get_runs/{self.project_id}",
                         {"suite_id": suite_id, "is_completed": 0})
        if isinstance(data, dict):
            data = data.get("runs", [])
        return [TestRun(id=str(r["id"]), name=r.get("name", "")) for r in data]

    def close_run(self, run_id: str) -> None:
        data = self._post(f"Closing test run {run_id}", f"close_run/{run_id}")
        logger.info("Closed test run: %s | %s", run_id, data.get("name", ""))
