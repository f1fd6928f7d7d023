# deep_suppressor/targets.py
"""
Initial target list.

Command-line grammar (one target per ``--target`` value)::

    TARGET  := ["!"] APP_ID "=" PATTERN ("," PATTERN)*
    APP_ID  := non-empty, no whitespace, no "=" or ","
    PATTERN := non-empty process-name glob

A leading ``!`` marks the target sticky (never terminated). Whitespace
around items is ignored. Repeating an app id merges its patterns in
order without duplicates.

JSON config (``suppress_config.json``)::

    {"suppress_apps": {"com.example.app": {"enabled": true,
                                           "processes": ["com.example.app:push"],
                                           "sticky": false}}}

Only enabled apps with at least one process become targets.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from deep_suppressor.exceptions import TargetListError
from deep_suppressor.models import Target

logger = logging.getLogger(__name__)

STICKY_MARKER = "!"
APP_ID_RE = re.compile(r"^[^\s=,!][^\s=,]*$")


def _make_target(app_id: str, patterns: list[str], sticky: bool, source: str) -> Target:
    if not APP_ID_RE.match(app_id):
        raise TargetListError(f"invalid app id {app_id!r} in {source}")
    try:
        return Target(app_id=app_id, process_patterns=patterns, sticky=sticky)
    except ValidationError as e:
        raise TargetListError(f"invalid target {source}: {e.errors()[0]['msg']}") from e


def parse_target_spec(text: str) -> Target:
    """Parse one ``[!]APP_ID=PATTERN[,PATTERN...]`` value."""
    if "=" not in text:
        raise TargetListError(f"target {text!r} is missing '=' between app id and process patterns")

    head, _, tail = text.partition("=")
    head = head.strip()
    sticky = head.startswith(STICKY_MARKER)
    app_id = head[len(STICKY_MARKER):].strip() if sticky else head

    patterns = [item.strip() for item in tail.split(",")]
    if not patterns or any(not p for p in patterns):
        raise TargetListError(f"target {text!r} has an empty process pattern")
    return _make_target(app_id, patterns, sticky, repr(text))


def merge_targets(targets: Iterable[Target]) -> list[Target]:
    """Merge targets sharing an app id, keeping first-seen order."""
    merged: dict[str, Target] = {}
    for target in targets:
        existing = merged.get(target.app_id)
        if existing is None:
            merged[target.app_id] = target.model_copy(deep=True)
            continue
        existing.process_patterns = [
            *existing.process_patterns,
            *(p for p in target.process_patterns if p not in existing.process_patterns),
        ]
        existing.sticky = existing.sticky or target.sticky
    return list(merged.values())


def parse_target_args(specs: Iterable[str]) -> list[Target]:
    return merge_targets(parse_target_spec(spec) for spec in specs)


def parse_targets_config(raw: Any, source: str = "config") -> list[Target]:
    """Targets from a decoded ``suppress_config.json`` document."""
    if not isinstance(raw, dict) or not isinstance(raw.get("suppress_apps"), dict):
        raise TargetListError(f"{source}: expected an object with a 'suppress_apps' object")

    targets: list[Target] = []
    for app_id, entry in raw["suppress_apps"].items():
        if not isinstance(entry, dict) or not isinstance(entry.get("enabled"), bool):
            logger.warning(f"{source}: skipping {app_id!r}, 'enabled' must be a boolean")
            continue
        if not entry["enabled"]:
            logger.debug(f"{source}: {app_id} is disabled")
            continue
        processes = entry.get("processes")
        if not isinstance(processes, list) or not processes:
            logger.warning(f"{source}: skipping {app_id!r}, 'processes' must be a non-empty list")
            continue
        if not all(isinstance(p, str) and p.strip() for p in processes):
            raise TargetListError(f"{source}: {app_id!r} has an empty or non-string process name")
        sticky = entry.get("sticky", False)
        if not isinstance(sticky, bool):
            raise TargetListError(f"{source}: 'sticky' of {app_id!r} must be a boolean")
        targets.append(_make_target(str(app_id), [p.strip() for p in processes], sticky, source))
    return targets


def load_targets_config(path: str | os.PathLike[str]) -> list[Target]:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TargetListError(f"cannot read target config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise TargetListError(f"target config {path} is not valid JSON: {e}") from e
    return parse_targets_config(raw, source=str(path))


def build_targets(
    specs: Iterable[str] = (),
    config_path: str | os.PathLike[str] | None = None,
) -> list[Target]:
    """
    Combine config-file and command-line targets.

    Raises:
        TargetListError: A spec is malformed, the config is unusable, or
            the resulting list is empty.
    """
    targets: list[Target] = []
    if config_path is not None:
        targets.extend(load_targets_config(config_path))
    targets.extend(parse_target_spec(spec) for spec in specs)

    merged = merge_targets(targets)
    if not merged:
        raise TargetListError("no valid targets specified")
    for target in merged:
        logger.info(
            f"Added target: {target.app_id} with {len(target.process_patterns)} processes"
            + (" (sticky)" if target.sticky else "")
        )
    return merged
