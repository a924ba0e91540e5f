"""JSON file rule store.

Implements the core RuleStore port on top of the ``rules`` array in
config.json. Other sections of the file are left untouched. The read and
write helpers are shared with the config panel so both write the file the
same way.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, List

from core.rules import Rule, rules_from_config

LOGGER = logging.getLogger(__name__)


def read_config(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Load a config file; a missing file reads as an empty config.

    Raises ``ValueError`` (``json.JSONDecodeError`` included) when the file is
    not a JSON object.
    """

    path = Path(path)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return data


def write_config(path: str | os.PathLike[str], data: dict[str, Any]) -> None:
    """Write ``data`` through a temp file so readers never see a partial file."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(data, indent=2, ensure_ascii=True) + "\n")
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class JsonRuleStore:
    """Reads and writes rules in a config.json file."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get_rules(self) -> List[Rule]:
        return rules_from_config(read_config(self._path).get("rules", []) or [])

    def save_rules(self, rules: List[Rule]) -> None:
        """Replace the whole rule list, keeping the other sections."""

        data = read_config(self._path)
        data["rules"] = [rule.to_config() for rule in rules]
        write_config(self._path, data)
        LOGGER.info("Saved %s rules to %s", len(rules), self._path)
