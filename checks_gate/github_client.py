import http.client
import json
import urllib.error
import urllib.request


class GitHubClientError(Exception):
    pass


DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"

RULESET_CHECKS_QUERY = """
query ($owner: String!, $repo: String!, $rulesetsFirst: Int!, $rulesFirst: Int!) {
  repository(name: $repo, owner: $owner) {
    rulesets(first: $rulesetsFirst) {
      nodes {
        rules(first: $rulesFirst) {
          nodes {
            type
            parameters {
              ... on RequiredStatusChecksParameters {
                requiredStatusChecks {
                  context
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

BRANCH_PROTECTION_CHECKS_QUERY = """
query ($owner: String!, $repo: String!) {
  repository(name: $repo, owner: $owner) {
    branchProtectionRules(last: 1) {
      nodes {
        requiredStatusCheckContexts
      }
    }
  }
}
"""

PULL_REQUEST_HEAD_CHECKS_QUERY = """
query ($owner: String!, $repo: String!, $number: Int!, $contextsFirst: Int!, $contextsAfter: String) {
  repository(name: $repo, owner: $owner) {
    pullRequest(number: $number) {
      number
      commits(last: 1) {
        nodes {
          commit {
            oid
            statusCheckRollup {
              contexts(first: $contextsFirst, after: $contextsAfter) {
                pageInfo {
                  hasNextPage
                  endCursor
                }
                nodes {
                  __typename
                  ... on CheckRun {
                    name
                    conclusion
                  }
                  ... on StatusContext {
                    context
                    state
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

REQUIRED_STATUS_CHECKS_RULE = "required_status_checks"


def graphql_request(url, query, variables, headers=None, timeout=10):
    req_headers = {"Accept": "application/json", "Content-Type": "application/json"}
    if headers:
        req_headers.update(headers)
    data = json.dumps({"query": query, "variables": variables}).encode("utf-8")
    req = urllib.request.Request(url or DEFAULT_GRAPHQL_URL, data=data, headers=req_headers, method="POST")

    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            status = response.status
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        raise GitHubClientError(f"GraphQL API failure status={exc.code} body={body}") from exc
    except UnicodeDecodeError as exc:
        raise GitHubClientError(f"GraphQL API returned undecodable body error={exc}") from exc
    except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
        raise GitHubClientError(f"GraphQL API unreachable error={exc}") from exc

    if status != 200:
        raise GitHubClientError(f"GraphQL API failure status={status} body={raw}")
    try:
        payload = json.loads(raw) if raw else None
    except ValueError as exc:
        raise GitHubClientError(f"GraphQL API returned invalid JSON body={raw}") from exc
    if not isinstance(payload, dict):
        raise GitHubClientError(f"GraphQL API returned unexpected body={raw}")

    errors = payload.get("errors")
    if errors:
        if not isinstance(errors, list):
            errors = [errors]
        messages = [str(err.get("message", err)) if isinstance(err, dict) else str(err) for err in errors]
        raise GitHubClientError(f"GraphQL errors: {'; '.join(messages)}")

    result = payload.get("data")
    if not isinstance(result, dict):
        raise GitHubClientError(f"GraphQL API response missing data body={raw}")
    return result


def _dig(data, path, label):
    current = data
    for key in path:
        if not isinstance(current, dict) or current.get(key) is None:
            raise GitHubClientError(f"GraphQL response missing field={label}.{key}")
        current = current[key]
    return current


def _mapping(value, label):
    if not isinstance(value, dict):
        raise GitHubClientError(f"GraphQL response field={label} is not an object")
    return value


def _sequence(value, label):
    if not isinstance(value, list):
        raise GitHubClientError(f"GraphQL response field={label} is not a list")
    return value


def _string_list(values, label):
    values = _sequence(values, label)
    if not all(isinstance(value, str) for value in values):
        raise GitHubClientError(f"GraphQL response field={label} holds non-string entries")
    return list(values)


def _rule_checks(rule):
    checks = None
    params = rule.get("parameters")
    if params is not None:
        checks = _mapping(params, "rules.parameters").get("requiredStatusChecks")
    if checks is None:
        checks = rule.get("requiredStatusChecks")
    if checks is None:
        return []
    return _sequence(checks, "rules.requiredStatusChecks")


def get_ruleset_required_checks(
    owner,
    repo,
    url=None,
    headers=None,
    timeout=10,
    rulesets_first=10,
    rules_first=10,
):
    data = graphql_request(
        url,
        RULESET_CHECKS_QUERY,
        {
            "owner": owner,
            "repo": repo,
            "rulesetsFirst": rulesets_first,
            "rulesFirst": rules_first,
        },
        headers=headers,
        timeout=timeout,
    )
    rulesets = _sequence(_dig(data, ("repository", "rulesets", "nodes"), "rulesets"), "rulesets.nodes")

    contexts = []
    for ruleset in rulesets:
        rules = _sequence(_dig(ruleset, ("rules", "nodes"), "rulesets.rules"), "rules.nodes")
        for rule in rules:
            rule = _mapping(rule, "rules.nodes[]")
            if str(rule.get("type", "")).lower() != REQUIRED_STATUS_CHECKS_RULE:
                continue
            for check in _rule_checks(rule):
                context = _mapping(check, "requiredStatusChecks[]").get("context")
                if context is not None and not isinstance(context, str):
                    raise GitHubClientError("GraphQL response field=requiredStatusChecks[].context is not a string")
                if context and context not in contexts:
                    contexts.append(context)
    return contexts


def get_branch_protection_required_checks(owner, repo, url=None, headers=None, timeout=10):
    data = graphql_request(
        url,
        BRANCH_PROTECTION_CHECKS_QUERY,
        {"owner": owner, "repo": repo},
        headers=headers,
        timeout=timeout,
    )
    rules = _sequence(
        _dig(data, ("repository", "branchProtectionRules", "nodes"), "branchProtectionRules"),
        "branchProtectionRules.nodes",
    )
    if not rules or rules[0] is None:
        return []
    contexts = _mapping(rules[0], "branchProtectionRules.nodes[0]").get("requiredStatusCheckContexts")
    if contexts is None:
        return []
    return _string_list(contexts, "requiredStatusCheckContexts")


def _rollup_contexts(pull_request):
    nodes = _sequence(_dig(pull_request, ("commits", "nodes"), "pullRequest.commits"), "commits.nodes")
    if not nodes:
        return None
    commit = _mapping(_mapping(nodes[0], "commits.nodes[0]").get("commit"), "commits.nodes[0].commit")
    rollup = commit.get("statusCheckRollup")
    if rollup is None:
        return None
    return _mapping(_mapping(rollup, "statusCheckRollup").get("contexts"), "statusCheckRollup.contexts")


def fetch_pull_request_head_checks(
    owner,
    repo,
    number,
    url=None,
    headers=None,
    timeout=10,
    contexts_first=100,
):
    """
    Fetches a pull request with only its head commit (commits(last: 1)),
    so commits.nodes[0] is the latest commit.

    Follows the rollup's pageInfo until every check context is collected;
    the returned contexts.nodes holds all pages.
    """
    variables = {
        "owner": owner,
        "repo": repo,
        "number": int(number),
        "contextsFirst": contexts_first,
        "contextsAfter": None,
    }
    data = graphql_request(url, PULL_REQUEST_HEAD_CHECKS_QUERY, variables, headers=headers, timeout=timeout)
    pull_request = _dig(data, ("repository", "pullRequest"), "pullRequest")
    contexts = _rollup_contexts(pull_request)
    if contexts is None:
        return pull_request

    nodes = _sequence(contexts.get("nodes") or [], "statusCheckRollup.contexts.nodes")
    page_info = contexts.get("pageInfo") or {}
    seen_cursors = set()
    while page_info.get("hasNextPage") and page_info.get("endCursor") not in seen_cursors:
        cursor = page_info["endCursor"]
        if not cursor:
            break
        seen_cursors.add(cursor)
        variables = dict(variables, contextsAfter=cursor)
        data = graphql_request(url, PULL_REQUEST_HEAD_CHECKS_QUERY, variables, headers=headers, timeout=timeout)
        page = _rollup_contexts(_dig(data, ("repository", "pullRequest"), "pullRequest"))
        if page is None:
            raise GitHubClientError("GraphQL response lost statusCheckRollup while paginating")
        nodes = nodes + _sequence(page.get("nodes") or [], "statusCheckRollup.contexts.nodes")
        page_info = page.get("pageInfo") or {}

    contexts["nodes"] = nodes
    if "pageInfo" in contexts or page_info:
        contexts["pageInfo"] = dict(page_info)
    return pull_request
