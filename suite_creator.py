"""
suite_creator.py – First-time synchronization of a script or subplan.

Creates one suite holding exactly one section and adds every current test case
to that section in workbook order.
"""

from __future__ import annotations

import logging

from errors import TmsError, WorkbookError
from models import SuiteDescriptor, TestCaseModel
from plan_reader import PlanReadResult
from tms_client import TmsClient, suite_description

logger = logging.getLogger("suite-sync")


class SuiteCreator:
    def __init__(self, tms: TmsClient) -> None:
        self._tms = tms

    def upload_script(self, cases: list[TestCaseModel], suite_name: str, relative_path: str) -> SuiteDescriptor:
        return self._upload(cases, suite_name, relative_path)

    def upload_plan(self, plan: PlanReadResult, suite_name: str, relative_path: str) -> SuiteDescriptor:
        return self._upload(plan.cases, suite_name, relative_path)

    def _upload(self, cases: list[TestCaseModel], suite_name: str, relative_path: str) -> SuiteDescriptor:
        if not cases:
            raise WorkbookError(f"No test case found in {relative_path}; nothing to upload")

        suite = self._tms.create_suite(suite_name, suite_description(relative_path))
        logger.info("Created suite '%s' (id=%s)", suite_name, suite.id)
        section_id = self._tms.add_section(suite_name, suite.id)
        added = self._tms.add_cases(section_id, cases)

        missing = [case.key for case in cases if case.key not in added]
        if missing:
            raise TmsError(f"Adding test cases to suite {suite.id}", f"no id returned for {missing}")

        suite.file_path = relative_path
        suite.test_cases = {case.key: added[case.key] for case in cases}
        logger.info("Uploaded %d test case(s) to suite %s", len(cases), suite.id)
        return suite
