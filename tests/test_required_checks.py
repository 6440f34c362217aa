import pytest

from checks_gate.evaluator import (
    PullRequestDataError,
    check_required_actions,
    evaluate_required_checks,
)
from checks_gate.policy_resolver import PolicyResolution


def _pr(checks):
    return {
        "commits": {
            "nodes": [
                {"commit": {"statusCheckRollup": {"contexts": {"nodes": checks}}}},
            ]
        }
    }


def _resolution(required, source="rulesets"):
    status = "found" if required else "absent"
    return PolicyResolution(source, list(required), status)


def _quiet(component, message, **fields):
    return None


def test_all_required_checks_success_passes():
    checks = [
        {"name": "build", "conclusion": "SUCCESS"},
        {"name": "test", "conclusion": "SUCCESS"},
        {"name": "lint", "conclusion": "SUCCESS"},
    ]
    result = evaluate_required_checks(_pr(checks), _resolution(["build", "test"]), log=_quiet)
    assert result["passed"] is True
    assert result["kept_conclusions"] == ["SUCCESS", "SUCCESS"]
    assert result["reason"] == "all_required_checks_passed"


def test_required_check_failure_blocks():
    checks = [
        {"name": "build", "conclusion": "SUCCESS"},
        {"name": "test", "conclusion": "FAILURE"},
    ]
    result = evaluate_required_checks(_pr(checks), _resolution(["build", "test"]), log=_quiet)
    assert result["passed"] is False
    assert result["has_failures"] is True
    assert result["reason"] == "required_check_failed"


def test_missing_required_check_fails_closed():
    checks = [{"name": "build", "conclusion": "SUCCESS"}]
    result = evaluate_required_checks(_pr(checks), _resolution(["build", "test"]), log=_quiet)
    assert result["passed"] is False
    assert result["has_all_required"] is False
    assert result["missing_checks"] == ["test"]


def test_empty_policy_passes_regardless_of_checks():
    checks = [{"name": "build", "conclusion": "FAILURE"}]
    result = evaluate_required_checks(_pr(checks), _resolution([], source="none"), log=_quiet)
    assert result["passed"] is True
    assert result["reason"] == "no_required_checks"


def test_non_failure_conclusions_do_not_block():
    checks = [
        {"name": "build", "conclusion": "NEUTRAL"},
        {"name": "test", "conclusion": "CANCELLED"},
        {"name": "deploy", "conclusion": None},
    ]
    result = evaluate_required_checks(
        _pr(checks), _resolution(["build", "test", "deploy"]), log=_quiet
    )
    assert result["passed"] is True


def test_failure_on_unrequired_check_is_ignored():
    checks = [
        {"name": "build", "conclusion": "SUCCESS"},
        {"name": "lint", "conclusion": "FAILURE"},
    ]
    result = evaluate_required_checks(_pr(checks), _resolution(["build"]), log=_quiet)
    assert result["passed"] is True


def test_status_context_nodes_are_matched_by_context():
    checks = [
        {"__typename": "StatusContext", "context": "ci/jenkins", "state": "FAILURE"},
        {"__typename": "CheckRun", "name": "build", "conclusion": "SUCCESS"},
    ]
    result = evaluate_required_checks(_pr(checks), _resolution(["ci/jenkins", "build"]), log=_quiet)
    assert result["passed"] is False
    assert result["kept_conclusions"] == ["FAILURE", "SUCCESS"]


def test_null_rollup_has_no_checks():
    pr = {"commits": {"nodes": [{"commit": {"statusCheckRollup": None}}]}}
    result = evaluate_required_checks(pr, _resolution(["build"]), log=_quiet)
    assert result["passed"] is False
    assert result["missing_checks"] == ["build"]


def test_only_first_commit_node_is_read():
    pr = _pr([{"name": "build", "conclusion": "SUCCESS"}])
    pr["commits"]["nodes"].append(
        {"commit": {"statusCheckRollup": {"contexts": {"nodes": [{"name": "build", "conclusion": "FAILURE"}]}}}}
    )
    result = evaluate_required_checks(pr, _resolution(["build"]), log=_quiet)
    assert result["passed"] is True


def test_pull_request_without_commits_raises():
    with pytest.raises(PullRequestDataError):
        evaluate_required_checks({"commits": {"nodes": []}}, _resolution(["build"]), log=_quiet)


def test_diagnostics_logged_through_injected_logger():
    lines = []

    def _record(component, message, **fields):
        lines.append((component, message, fields))

    checks = [{"name": "build", "conclusion": "SUCCESS"}]
    evaluate_required_checks(_pr(checks), _resolution(["build"]), log=_record)
    by_message = {message: fields for _, message, fields in lines}
    assert all(component == "evaluator" for component, _, _ in lines)
    assert by_message["rules_source"] == {"source": "rulesets", "status": "found"}
    assert by_message["gates"]["has_failures"] is False
    assert by_message["verdict"]["result"] == "PASS"
    assert "rollup_truncated" not in by_message


def test_truncated_rollup_is_flagged_and_logged():
    lines = []
    pr = _pr([{"name": "build", "conclusion": "SUCCESS"}])
    pr["commits"]["nodes"][0]["commit"]["statusCheckRollup"]["contexts"]["pageInfo"] = {
        "hasNextPage": True,
        "endCursor": "Y3Vyc29yOjE=",
    }
    result = evaluate_required_checks(
        pr,
        _resolution(["build", "test"]),
        log=lambda component, message, **fields: lines.append((message, fields)),
    )
    assert result["rollup_truncated"] is True
    assert result["passed"] is False
    assert ("rollup_truncated", {"fetched": 1}) in lines


def test_partial_config_is_filled_from_defaults():
    checks = [
        {"name": "build", "conclusion": "SUCCESS"},
        {"name": "build", "conclusion": "SUCCESS"},
    ]
    result = evaluate_required_checks(
        _pr(checks),
        _resolution(["build", "test"]),
        config={"evaluation": {"match_mode": "coverage"}},
        log=_quiet,
    )
    assert result["match_mode"] == "coverage"
    assert result["passed"] is False


def test_check_required_actions_returns_verdict(monkeypatch):
    calls = []

    def _fake_resolve(owner, repo, **kwargs):
        calls.append((owner, repo, kwargs["headers"]))
        return _resolution(["build", "test"])

    monkeypatch.setattr("checks_gate.evaluator.resolve_policy", _fake_resolve)
    checks = [
        {"name": "build", "conclusion": "SUCCESS"},
        {"name": "test", "conclusion": "SUCCESS"},
    ]
    headers = {"Authorization": "bearer x"}
    assert check_required_actions(_pr(checks), "octo", "repo", headers=headers, log=_quiet) is True
    assert calls == [("octo", "repo", headers)]


def test_check_required_actions_missing_check_false(monkeypatch):
    monkeypatch.setattr(
        "checks_gate.evaluator.resolve_policy",
        lambda owner, repo, **kwargs: _resolution(["build", "test"]),
    )
    checks = [{"name": "build", "conclusion": "SUCCESS"}]
    assert check_required_actions(_pr(checks), "octo", "repo", log=_quiet) is False
