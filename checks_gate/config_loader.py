import copy
import hashlib
import json
import os
from pathlib import Path

import yaml

from checks_gate.logger import log_event


class ConfigLoadError(Exception):
    pass


MATCH_MODES = {"count", "coverage"}
FETCH_FAILURE_MODES = {"pass", "fail"}

DEFAULT_CONFIG = {
    "version": "v1",
    "api": {
        "graphql_url": "https://api.github.com/graphql",
        "timeout_seconds": 10,
    },
    "queries": {
        "rulesets_first": 10,
        "rules_first": 10,
        "contexts_first": 100,
    },
    "evaluation": {
        "match_mode": "count",
        "on_fetch_failure": "pass",
    },
}


def default_config():
    return copy.deepcopy(DEFAULT_CONFIG)


def _merge(raw_config):
    merged = default_config()
    for key, value in raw_config.items():
        if isinstance(merged.get(key), dict):
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigLoadError(f"Config section '{key}' must be a mapping")
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def _validate(config):
    problems = []
    evaluation = config["evaluation"]
    if evaluation.get("match_mode") not in MATCH_MODES:
        problems.append(f"evaluation.match_mode={evaluation.get('match_mode')}")
    if evaluation.get("on_fetch_failure") not in FETCH_FAILURE_MODES:
        problems.append(f"evaluation.on_fetch_failure={evaluation.get('on_fetch_failure')}")

    limits = [("api", "timeout_seconds")] + [("queries", key) for key in DEFAULT_CONFIG["queries"]]
    for section, key in limits:
        value = config[section].get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            problems.append(f"{section}.{key}={value}")

    if not str(config["api"].get("graphql_url") or "").strip():
        problems.append("api.graphql_url=<empty>")
    return problems


def merge_config(config=None):
    """Fills a caller-built, possibly partial, config from the defaults."""
    if config is None:
        return default_config()
    if not isinstance(config, dict):
        raise ConfigLoadError("Config must be a mapping")
    merged = _merge(config)
    problems = _validate(merged)
    if problems:
        raise ConfigLoadError(f"Config has invalid values: {', '.join(problems)}")
    return merged


def load_config(config_path=None):
    effective_path = config_path or os.environ.get("CHECKS_GATE_CONFIG_PATH")
    if not effective_path:
        config = default_config()
        config_hash = hashlib.sha256(
            json.dumps(config, sort_keys=True).encode("utf-8")
        ).hexdigest()
        log_event("config_loader", f"defaults config_hash={config_hash}")
        return config, config_hash

    path = Path(effective_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except Exception as exc:
        log_event("config_loader", f"load_failed path={path} error={exc}")
        raise ConfigLoadError(f"Failed to read config: {exc}") from exc

    try:
        loaded = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        log_event("config_loader", f"parse_failed path={path} error={exc}")
        raise ConfigLoadError(f"Failed to parse config YAML: {exc}") from exc

    if not isinstance(loaded, dict):
        log_event("config_loader", f"invalid_mapping path={path}")
        raise ConfigLoadError("Config YAML must be a mapping")

    if "version" not in loaded:
        log_event("config_loader", f"missing_keys path={path} missing=version")
        raise ConfigLoadError("Config missing required keys: version")

    try:
        config = _merge(loaded)
    except ConfigLoadError as exc:
        log_event("config_loader", f"invalid_section path={path} error={exc}")
        raise

    problems = _validate(config)
    if problems:
        log_event("config_loader", f"invalid_values path={path} problems={','.join(problems)}")
        raise ConfigLoadError(f"Config has invalid values: {', '.join(problems)}")

    config_hash = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    log_event(
        "config_loader",
        f"loaded path={path} match_mode={config['evaluation']['match_mode']} "
        f"on_fetch_failure={config['evaluation']['on_fetch_failure']} config_hash={config_hash}",
    )
    return config, config_hash
