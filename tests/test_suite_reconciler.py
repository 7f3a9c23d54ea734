"""Tests for SuiteReconciler: delta, phases, ordering and the active-run guard."""
import pytest

from conftest import FakeTms
from errors import SuiteStructureError
from models import Scenario, SuiteDescriptor, TestCaseModel, TestStepModel
from plan_reader import PlanReadResult, PlanStep
from suite_reconciler import RunConflictChoice, SuiteReconciler, compute_delta


def _case(name, command="open(url)"):
    return TestCaseModel(
        name=name,
        script_path="/p/artifact/script/web.xlsx",
        activities=["Open"],
        steps=[TestStepModel(activity="Open", row=5, target="web", command=command)],
    )


def _existing(**ids):
    return [Scenario(test_case=name, test_case_id=case_id, name=name) for name, case_id in ids.items()]


def _suite(existing):
    return SuiteDescriptor(id="12", file_path="artifact/script/web.xlsx",
                           test_cases={s.test_case: s.test_case_id for s in existing})


def _cache(*cases):
    return {c.key: c.fingerprint for c in cases}


class TestComputeDelta:
    def test_partition_is_disjoint_and_complete(self):
        current = [_case("B"), _case("C"), _case("D")]
        existing = _existing(A="1", B="2", C="3")

        delta = compute_delta(current, existing)

        deleted = {s.test_case for s in delta.to_delete}
        added = {c.key for c in delta.to_add}
        unchanged = {c.key for c in delta.unchanged}
        assert deleted == {"A"}
        assert added == {"D"}
        assert unchanged == {"B", "C"}
        assert not (deleted & added) and not (added & unchanged) and not (deleted & unchanged)
        assert deleted | added | unchanged == {"A", "B", "C", "D"}


class TestReconcileScript:
    def test_removed_and_new_scenarios(self, fake_tms):
        """[A, B, C] recorded as {A:1, B:2, C:3}; workbook now [B, C, D]."""
        current = [_case("B"), _case("C"), _case("D")]
        existing = _existing(A="1", B="2", C="3")
        suite = _suite(existing)

        result = SuiteReconciler(fake_tms).reconcile_script(suite, current, existing, _cache(*current))

        assert fake_tms.calls_to("delete") == [(["1"],)]
        assert fake_tms.calls_to("add_cases") == [("S1", ["D"])]
        new_id = result.test_cases["D"]
        assert fake_tms.calls_to("update_case_order") == [("12", "S1", f"2,3,{new_id}")]
        assert result.order.split(",") == ["2", "3", new_id]
        assert suite.test_cases == {"B": "2", "C": "3", "D": new_id}
        assert result.deleted == ["A"] and result.added == ["D"] and result.updated == []

    def test_delete_happens_before_add(self, fake_tms):
        current = [_case("D")]
        existing = _existing(A="1")
        SuiteReconciler(fake_tms).reconcile_script(_suite(existing), current, existing, {})

        names = fake_tms.names()
        assert names.index("delete") < names.index("add_cases") < names.index("update_case_order")

    def test_selective_update_touches_only_requested_case(self, fake_tms):
        current = [_case("A"), _case("B", command="changed()"), _case("C", command="changed()")]
        existing = _existing(A="1", B="2", C="3")

        result = SuiteReconciler(fake_tms).reconcile_script(
            _suite(existing), current, existing, cache={}, scenarios_to_update=["B"]
        )

        assert fake_tms.calls_to("update_case") == [("2", "B")]
        assert fake_tms.calls_to("add_cases") == []
        assert fake_tms.calls_to("delete") == []
        assert result.updated == ["B"]

    @pytest.mark.parametrize("requested", [["Z"], ["D"]])
    def test_selective_update_needs_current_and_existing_case(self, fake_tms, requested):
        current = [_case("A"), _case("D")]
        existing = _existing(A="1", Z="9")

        with pytest.raises(SuiteStructureError):
            SuiteReconciler(fake_tms).reconcile_script(
                _suite(existing), current, existing, scenarios_to_update=requested
            )
        assert fake_tms.mutations() == []

    def test_two_sections_fail_before_adding(self):
        tms = FakeTms(sections=2)
        current = [_case("A"), _case("B")]
        existing = _existing(A="1")

        with pytest.raises(SuiteStructureError, match="exactly one section"):
            SuiteReconciler(tms).reconcile_script(_suite(existing), current, existing, _cache(*current))
        assert tms.calls_to("add_cases") == []

    def test_unchanged_content_is_not_updated(self, fake_tms):
        current = [_case("A"), _case("B")]
        existing = _existing(A="1", B="2")

        SuiteReconciler(fake_tms).reconcile_script(_suite(existing), current, existing, _cache(*current))

        assert fake_tms.calls_to("update_case") == []
        assert fake_tms.calls_to("add_cases") == []
        assert fake_tms.calls_to("delete") == []
        assert fake_tms.calls_to("update_case_order") == [("12", "S1", "1,2")]

    def test_drifted_content_is_updated(self, fake_tms):
        stale = _case("B")
        current = [_case("A"), _case("B", command="type(user)")]
        existing = _existing(A="1", B="2")

        result = SuiteReconciler(fake_tms).reconcile_script(
            _suite(existing), current, existing, _cache(current[0], stale)
        )

        assert fake_tms.calls_to("update_case") == [("2", "B")]
        assert result.updated == ["B"]


class TestReconcilePlan:
    def test_order_follows_steps(self, fake_tms):
        login = _case("Login").for_plan_step(5, 1)
        search = _case("Search").for_plan_step(5, 1)
        login_again = _case("Login").for_plan_step(6, 2)
        plan = PlanReadResult(plan_path="/p/artifact/plan/r.xlsx", subplan="Smoke", steps=[
            PlanStep(row=5, index=1, script_path="/p/artifact/script/web.xlsx", cases=[login, search]),
            PlanStep(row=6, index=2, script_path="/p/artifact/script/web.xlsx", cases=[login_again]),
        ])
        existing = _existing(**{"web/Login/5": "1", "web/Login/6": "3"})
        existing.append(Scenario("web/Gone/7", "4"))

        result = SuiteReconciler(fake_tms).reconcile_plan(
            _suite(existing), plan, existing, _cache(login, login_again)
        )

        search_id = result.test_cases["web/Search/5"]
        assert fake_tms.calls_to("delete") == [(["4"],)]
        assert fake_tms.calls_to("add_cases") == [("S1", ["web/Search/5"])]
        assert result.order == f"1,{search_id},3"


class TestActiveRunGuard:
    def test_no_runs_proceeds_silently(self, fake_tms):
        chooser = pytest.fail
        assert SuiteReconciler(fake_tms, chooser=chooser).should_update_suite("12") is True

    def test_abort_makes_no_mutating_call(self, active_run):
        tms = FakeTms(runs=[active_run])
        assert SuiteReconciler(tms, chooser=lambda runs: "3").should_update_suite("12") is False
        assert tms.mutations() == []

    @pytest.mark.parametrize("answer", ["", "9", "yes", None])
    def test_unrecognized_answer_aborts(self, active_run, answer):
        tms = FakeTms(runs=[active_run])
        assert SuiteReconciler(tms, chooser=lambda runs: answer).should_update_suite("12") is False

    def test_proceed_leaves_runs_open(self, active_run):
        tms = FakeTms(runs=[active_run])
        assert SuiteReconciler(tms, chooser=lambda runs: RunConflictChoice.PROCEED).should_update_suite("12")
        assert tms.calls_to("close_run") == []

    def test_close_runs_then_proceed(self, active_run):
        tms = FakeTms(runs=[active_run])
        assert SuiteReconciler(tms, chooser=lambda runs: "2").should_update_suite("12")
        assert tms.calls_to("close_run") == [("55",)]

    def test_close_runs_flag_skips_prompt(self, active_run):
        tms = FakeTms(runs=[active_run])
        reconciler = SuiteReconciler(tms, chooser=pytest.fail, close_runs=True)
        assert reconciler.should_update_suite("12")
        assert tms.calls_to("close_run") == [("55",)]
