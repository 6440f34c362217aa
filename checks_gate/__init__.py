from checks_gate.config_loader import (
    ConfigLoadError,
    default_config,
    load_config,
    merge_config,
)
from checks_gate.evaluator import (
    PullRequestDataError,
    check_required_actions,
    evaluate_required_checks,
)
from checks_gate.github_client import (
    GitHubClientError,
    fetch_pull_request_head_checks,
    get_branch_protection_required_checks,
    get_ruleset_required_checks,
)
from checks_gate.logger import (
    format_fields,
    log_event,
)
from checks_gate.policy_resolver import (
    PolicyResolution,
    resolve_policy,
)
from checks_gate.report import (
    verdict_report,
    write_verdict_artifact,
)

__all__ = [
    "ConfigLoadError",
    "GitHubClientError",
    "PolicyResolution",
    "PullRequestDataError",
    "check_required_actions",
    "default_config",
    "evaluate_required_checks",
    "fetch_pull_request_head_checks",
    "format_fields",
    "get_branch_protection_required_checks",
    "get_ruleset_required_checks",
    "load_config",
    "log_event",
    "merge_config",
    "resolve_policy",
    "verdict_report",
    "write_verdict_artifact",
]
