"""
Simulator config rewriting.

The simulator reads a plain `key = value` text file. Requested run
parameters replace every line mentioning their key; keys that never
appear are appended at the end. Other lines are left untouched.
"""

from __future__ import annotations
from typing import Dict, Mapping, Optional

from ..contracts.base import Error, ErrorCode, Result


# request parameter -> config key
CONFIG_KEYS = {
    "men": "population.nummen",
    "women": "population.numwomen",
    "time": "population.simtime",
}


def updates_for(
    men: Optional[int] = None,
    women: Optional[int] = None,
    time: Optional[int] = None
) -> Dict[str, str]:
    """Config updates for the parameters that were actually supplied."""
    requested = {"men": men, "women": women, "time": time}
    return {
        CONFIG_KEYS[name]: str(value)
        for name, value in requested.items()
        if value is not None
    }


def rewrite_config(path: str, updates: Mapping[str, str]) -> Result:
    """
    Apply updates to the config at path.

    Returns Result.success(changed) where changed is False when there
    was nothing to update (the file is not touched in that case).
    """
    if not updates:
        return Result.success(False)

    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        lines = []
    except OSError as e:
        return Result.failure(Error.create(ErrorCode.CONFIG_UNREADABLE, str(e), path=path))

    found = set()
    output = []
    for line in lines:
        key = _matching_key(line, updates)
        if key is None:
            output.append(line if line.endswith("\n") else line + "\n")
            continue
        output.append(f"{key} = {updates[key]}\n")
        found.add(key)

    for key, value in updates.items():
        if key not in found:
            output.append(f"{key} = {value}\n")

    try:
        with open(path, "w", encoding="utf-8") as f:
            f.writelines(output)
    except OSError as e:
        return Result.failure(Error.create(ErrorCode.CONFIG_UNREADABLE, str(e), path=path))

    return Result.success(True)


def _matching_key(line: str, updates: Mapping[str, str]) -> Optional[str]:
    for key in updates:
        if key in line:
            return key
    return None
