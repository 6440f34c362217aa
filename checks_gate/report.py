import json
import os

from checks_gate.logger import log_event


def _payload(owner, repo, evaluation):
    return {
        "repository": f"{owner}/{repo}",
        "passed": evaluation.get("passed", False),
        "reason": evaluation.get("reason", ""),
        "source": evaluation.get("source", "none"),
        "status": evaluation.get("status", ""),
        "match_mode": evaluation.get("match_mode", ""),
        "required_checks": evaluation.get("required_checks", []),
        "missing_checks": evaluation.get("missing_checks", []),
    }


def verdict_report(owner, repo, evaluation, config_hash=None):
    payload = _payload(owner, repo, evaluation)
    payload["config_hash"] = config_hash
    return "REQUIRED_CHECKS_REPORT " + json.dumps(payload, sort_keys=True)


def write_verdict_artifact(owner, repo, head_sha, evaluation, root="artifacts/required-checks"):
    os.makedirs(root, exist_ok=True)
    payload = _payload(owner, repo, evaluation)
    payload.update(
        {
            "head_sha": head_sha,
            "kept_conclusions": evaluation.get("kept_conclusions", []),
            "has_failures": evaluation.get("has_failures", False),
            "has_all_required": evaluation.get("has_all_required", False),
            "errors": evaluation.get("errors", []),
            "rollup_truncated": evaluation.get("rollup_truncated", False),
        }
    )
    path = os.path.join(root, f"{owner}-{repo}-{head_sha}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, sort_keys=True, indent=2)
        f.write("\n")
    status = "PASS" if payload["passed"] else "FAIL"
    log_event("artifact", f"wrote {owner}-{repo}-{head_sha}.json status={status}")
    return path
