from checks_gate.config_loader import merge_config
from checks_gate.logger import log_event
from checks_gate.policy_resolver import STATUS_FETCH_FAILED, resolve_policy


FAILURE_CONCLUSION = "FAILURE"


class PullRequestDataError(Exception):
    pass


def _commit_checks(pull_request):
    # commits.nodes[0] must be the latest commit; see fetch_pull_request_head_checks.
    nodes = ((pull_request or {}).get("commits") or {}).get("nodes") or []
    if not nodes:
        raise PullRequestDataError("Pull request has no commit nodes")
    commit = (nodes[0] or {}).get("commit") or {}
    rollup = commit.get("statusCheckRollup") or {}
    contexts = rollup.get("contexts") or {}
    truncated = bool((contexts.get("pageInfo") or {}).get("hasNextPage"))

    checks = []
    for node in contexts.get("nodes") or []:
        if not node:
            continue
        name = node.get("name") or node.get("context")
        conclusion = node.get("conclusion") if "conclusion" in node else node.get("state")
        checks.append({"name": name, "conclusion": conclusion})
    return checks, truncated


def _result(resolution, match_mode, passed, reason, **observed):
    result = {
        "passed": passed,
        "reason": reason,
        "source": resolution.source,
        "status": resolution.status,
        "errors": list(resolution.errors),
        "match_mode": match_mode,
        "required_checks": list(resolution.required_check_names),
        "kept_conclusions": [],
        "missing_checks": [],
        "has_failures": False,
        "has_all_required": True,
        "rollup_truncated": False,
    }
    result.update(observed)
    return result


def evaluate_required_checks(pull_request, resolution, config=None, log=log_event):
    cfg = merge_config(config)
    match_mode = cfg["evaluation"]["match_mode"]
    on_fetch_failure = cfg["evaluation"]["on_fetch_failure"]

    commit_checks, truncated = _commit_checks(pull_request)
    required = resolution.required_check_names

    log("evaluator", "commit_checks", checks=[f"{c['name']}:{c['conclusion']}" for c in commit_checks])
    log("evaluator", "required_checks", required=required)
    log("evaluator", "rules_source", source=resolution.source, status=resolution.status)
    if truncated:
        log("evaluator", "rollup_truncated", fetched=len(commit_checks))

    if not required:
        if resolution.status == STATUS_FETCH_FAILED and on_fetch_failure == "fail":
            log("evaluator", "verdict", result="FAIL", reason="policy_fetch_failed")
            return _result(
                resolution,
                match_mode,
                False,
                "policy_fetch_failed",
                has_all_required=False,
                rollup_truncated=truncated,
            )
        log("evaluator", "verdict", result="PASS", reason="no_required_checks")
        return _result(resolution, match_mode, True, "no_required_checks", rollup_truncated=truncated)

    required_set = set(required)
    kept = [check["conclusion"] for check in commit_checks if check["name"] in required_set]
    seen_names = {check["name"] for check in commit_checks}
    missing = [name for name in dict.fromkeys(required) if name not in seen_names]

    has_failures = FAILURE_CONCLUSION in kept
    if match_mode == "coverage":
        has_all_required = not missing
    else:
        has_all_required = len(kept) == len(required)

    log("evaluator", "required_checks_status", kept=kept)
    log(
        "evaluator",
        "gates",
        has_failures=has_failures,
        has_all_required=has_all_required,
        match_mode=match_mode,
    )

    passed = not has_failures and has_all_required
    if has_failures:
        reason = "required_check_failed"
    elif not has_all_required:
        reason = "missing_required_checks"
    else:
        reason = "all_required_checks_passed"
    log("evaluator", "verdict", result="PASS" if passed else "FAIL", reason=reason, missing=missing)

    return _result(
        resolution,
        match_mode,
        passed,
        reason,
        kept_conclusions=kept,
        missing_checks=missing,
        has_failures=has_failures,
        has_all_required=has_all_required,
        rollup_truncated=truncated,
    )


def check_required_actions(
    pull_request,
    owner,
    repo,
    graphql_url=None,
    headers=None,
    config=None,
    log=log_event,
):
    """
    Returns True when the pull request's latest commit satisfies the
    repository's required status checks.

    The first node of pull_request["commits"]["nodes"] is read as the latest
    commit. An empty policy passes unless the policy could not be fetched and
    evaluation.on_fetch_failure is "fail".
    """
    resolution = resolve_policy(
        owner,
        repo,
        graphql_url=graphql_url,
        headers=headers,
        config=config,
        log=log,
    )
    result = evaluate_required_checks(pull_request, resolution, config=config, log=log)
    return result["passed"]
