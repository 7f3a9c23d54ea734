"""Tests for models."""
from models import PLAN, Scenario, TestCaseModel, TestFile, TestStepModel


def _case(name="Login", row=None, command="click(locator)"):
    return TestCaseModel(
        name=name,
        script_path="/proj/artifact/script/web.xlsx",
        description="login works",
        activities=["Open"],
        steps=[TestStepModel(activity="Open", row=5, target="web", command=command, params=["#id"])],
        row=row,
    )


class TestTestCaseModel:
    def test_key_is_name_in_script_context(self):
        assert _case().key == "Login"

    def test_key_is_composite_for_plan_steps(self):
        """Plan-step cases are keyed by script/scenario/row."""
        assert _case().for_plan_step(row=7, index=2).key == "web/Login/7"

    def test_for_plan_step_copies_steps(self):
        original = _case()
        copy = original.for_plan_step(row=7, index=1)

        copy.steps[0].params.append("extra")

        assert original.steps[0].params == ["#id"]
        assert copy.steps is not original.steps
        assert copy.plan_step_index == 1
        assert original.row is None

    def test_fingerprint_tracks_step_content(self):
        assert _case().fingerprint == _case().fingerprint
        assert _case().fingerprint != _case(command="type(locator)").fingerprint

    def test_steps_by_activity_keeps_empty_activities(self):
        case = _case()
        case.activities.append("Close")
        grouped = case.steps_by_activity()
        assert list(grouped) == ["Open", "Close"]
        assert grouped["Close"] == []


class TestTestFile:
    def test_existing_cases_flattens_plan_steps(self):
        entry = TestFile(
            path="artifact/plan/p.xlsx",
            file_type=PLAN,
            suite_id="9",
            subplan="Smoke",
            plan_steps=[
                TestFile(path="artifact/script/a.xlsx", file_type="SCRIPT",
                         scenarios=[Scenario("a/X/5", "1")]),
                TestFile(path="artifact/script/b.xlsx", file_type="SCRIPT",
                         scenarios=[Scenario("b/Y/6", "2"), Scenario("b/Z/6", "3")]),
            ],
        )
        assert [s.test_case_id for s in entry.existing_cases()] == ["1", "2", "3"]

    def test_subplan_is_stored_as_sub_step(self):
        entry = TestFile(path="artifact/plan/p.xlsx", file_type=PLAN, suite_id="9", subplan="Smoke")

        data = entry.to_dict()

        assert data["subStep"] == "Smoke"
        assert "subplan" not in data
        assert TestFile.from_dict(data).subplan == "Smoke"

    def test_from_dict_accepts_legacy_subplan_key(self):
        entry = TestFile.from_dict({"path": "artifact/plan/p.xlsx", "fileType": PLAN, "subplan": "Smoke"})
        assert entry.subplan == "Smoke"

    def test_from_dict_reads_manifest_schema(self):
        entry = TestFile.from_dict({
            "path": "artifact/script/web.xlsx",
            "fileType": "SCRIPT",
            "suiteId": 12,
            "scenarios": [{"scenario": "Login", "testCase": "Login", "testCaseId": 5}],
            "suiteUrl": "https://tms/suites/12",
        })
        assert entry.suite_id == "12"
        assert entry.scenarios[0].test_case_id == "5"
        assert entry.to_dict()["scenarios"][0] == {
            "scenario": "Login", "testCase": "Login", "testCaseId": "5",
        }
