"""
tms_client.py – The contract every TMS adapter implements, and the factory
that picks one from configuration.

Adapters raise TmsError for any transport or authentication failure; the
engine never retries.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from config import Settings
from errors import ConfigError
from models import Section, SuiteDescriptor, TestCaseModel, TestRun

logger = logging.getLogger("suite-sync")


def suite_description(relative_path: str) -> str:
    """Text stored as the suite description on create/update."""
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return f"Synchronized from {relative_path} on {stamp}"


def step_lines(case: TestCaseModel) -> list[tuple[str, str]]:
    """(content, expected) pairs, one per activity, used as TMS test steps."""
    lines: list[tuple[str, str]] = []
    for activity, steps in case.steps_by_activity().items():
        content = [activity]
        for step in steps:
            params = ", ".join(p for p in step.params if p)
            detail = f"{step.target} » {step.command}"
            if params:
                detail += f" ({params})"
            if step.description:
                detail = f"{step.description}: {detail}"
            content.append(f"- {detail}")
        lines.append(("\n".join(content), ""))
    return lines


class TmsClient(ABC):
    """Operations the reconciliation engine needs from a TMS."""

    def __init__(self, project_id: str) -> None:
        self._project_id = str(project_id)

    @property
    def project_id(self) -> str:
        return self._project_id

    @abstractmethod
    def create_suite(self, name: str, description: str) -> SuiteDescriptor: ...

    @abstractmethod
    def update_suite(self, suite_id: str, description: str) -> SuiteDescriptor: ...

    @abstractmethod
    def add_section(self, name: str, suite_id: str) -> str: ...

    @abstractmethod
    def get_sections(self, suite_id: str) -> list[Section]: ...

    @abstractmethod
    def add_cases(self, section_id: str, cases: list[TestCaseModel]) -> dict[str, str]:
        """Add *cases* in order; return case key → new case id."""

    @abstractmethod
    def update_case(self, case_id: str, case: TestCaseModel, dry_run: bool = False) -> dict[str, str]:
        """Refresh an existing case; return case key → case id."""

    @abstractmethod
    def delete(self, case_ids: list[str]) -> None: ...

    @abstractmethod
    def get_existing_active_runs(self, suite_id: str) -> list[TestRun]: ...

    @abstractmethod
    def close_run(self, run_id: str) -> None: ...

    @abstractmethod
    def update_case_order(self, suite_id: str, section_id: str, ordered_ids: str) -> None:
        """Submit the canonical order as a comma-separated list of case ids."""


def create_tms_client(project_id: str) -> TmsClient:
    """Build the adapter selected by TMS_SOURCE."""
    Settings.validate()
    if Settings.TMS_SOURCE == "testrail":
        from testrail_client import TestRailClient

        return TestRailClient(
            base_url=Settings.TMS_URL,
            user=Settings.TMS_USER,
            api_key=Settings.TMS_PASSWORD,
            project_id=project_id,
            timeout=Settings.TMS_TIMEOUT,
        )
    if Settings.TMS_SOURCE == "azure":
        from ado_client import ADOClient

        return ADOClient(
            org_url=Settings.TMS_URL,
            pat=Settings.TMS_PASSWORD,
            project=project_id,
            timeout=Settings.TMS_TIMEOUT,
        )
    raise ConfigError(f"Unsupported TMS_SOURCE '{Settings.TMS_SOURCE}'")
