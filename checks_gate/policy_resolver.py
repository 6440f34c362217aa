import dataclasses
from typing import Any

from checks_gate.config_loader import merge_config
from checks_gate.github_client import (
    GitHubClientError,
    get_branch_protection_required_checks,
    get_ruleset_required_checks,
)
from checks_gate.logger import log_event


SOURCE_RULESETS = "rulesets"
SOURCE_BRANCH_PROTECTION = "branch_protection"
SOURCE_NONE = "none"

STATUS_FOUND = "found"
STATUS_ABSENT = "absent"
STATUS_FETCH_FAILED = "fetch_failed"


@dataclasses.dataclass
class PolicyResolution:
    source: str
    required_check_names: list[str]
    status: str
    errors: list[str] = dataclasses.field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def resolve_policy(owner, repo, graphql_url=None, headers=None, config=None, log=log_event):
    """
    Resolves the repository's required status checks.

    Rulesets win when they name any check; legacy branch protection is only
    queried otherwise. Query failures are logged and recorded on the result,
    never raised. A partial config is filled from the defaults.
    """
    cfg = merge_config(config)
    url = graphql_url or cfg["api"]["graphql_url"]
    timeout = cfg["api"]["timeout_seconds"]
    repository = f"{owner}/{repo}"
    errors = []

    try:
        ruleset_checks = get_ruleset_required_checks(
            owner,
            repo,
            url=url,
            headers=headers,
            timeout=timeout,
            rulesets_first=cfg["queries"]["rulesets_first"],
            rules_first=cfg["queries"]["rules_first"],
        )
    except GitHubClientError as exc:
        ruleset_checks = []
        errors.append(f"{SOURCE_RULESETS}: {exc}")
        log(
            "policy_resolver",
            "rulesets_unavailable",
            repo=repository,
            falling_back=SOURCE_BRANCH_PROTECTION,
            error=exc,
        )

    if ruleset_checks:
        log("policy_resolver", "resolved", source=SOURCE_RULESETS, repo=repository, required=ruleset_checks)
        return PolicyResolution(SOURCE_RULESETS, ruleset_checks, STATUS_FOUND, errors)

    try:
        protection_checks = get_branch_protection_required_checks(
            owner,
            repo,
            url=url,
            headers=headers,
            timeout=timeout,
        )
    except GitHubClientError as exc:
        protection_checks = []
        errors.append(f"{SOURCE_BRANCH_PROTECTION}: {exc}")
        log("policy_resolver", "branch_protection_unavailable", repo=repository, error=exc)

    if protection_checks:
        log(
            "policy_resolver",
            "resolved",
            source=SOURCE_BRANCH_PROTECTION,
            repo=repository,
            required=protection_checks,
        )
        return PolicyResolution(SOURCE_BRANCH_PROTECTION, protection_checks, STATUS_FOUND, errors)

    status = STATUS_FETCH_FAILED if errors else STATUS_ABSENT
    log("policy_resolver", "resolved", source=SOURCE_NONE, repo=repository, status=status)
    return PolicyResolution(SOURCE_NONE, [], status, errors)
