"""kuiper core - config loading, request loading, placeholder resolution."""

import datetime
import json
import logging
import os
import re
import time as _time
import uuid
from collections import deque
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from kuiper.errors import (
    EnvFileNotFoundError,
    InterpolationError,
    KuiperError,
    ParseError,
)
from kuiper.headers import (
    ROOT_MARKER,
    ancestor_directories,
    collect_overlays,
    find_traversal_root,
    merge_headers,
    resolve_request_path,
    validate_headers,
)

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".kuiper"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".kuiper.yaml",
    ".kuiper.yml",
    "kuiper.yaml",
    "kuiper.yml",
]

REQUEST_SUFFIX = ".kuiper"

_PLACEHOLDER_RE = re.compile(r"\{\{(.*?)\}\}")


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard — no fallthrough if missing)
      2. .kuiper.yaml (variants) in CWD
      3. ~/.kuiper/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load YAML config file. Returns empty defaults if not found.

    Stores '_config_dir' in the returned dict so relative paths in the
    config (root, env_file) resolve against the config file's directory.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ParseError(path, f"invalid YAML: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(path, f"invalid UTF-8: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(path, "config must be a mapping")
    defaults = data.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ParseError(path, "defaults must be a mapping")
    logger.debug("loaded config from %s", path)
    return {
        "defaults": defaults,
        "_config_dir": path.resolve().parent,
    }


def config_path_value(config: dict, key: str) -> Path | None:
    """Return a path-valued config default, relative to the config file."""
    value = config.get("defaults", {}).get(key)
    if not value:
        return None
    p = Path(value).expanduser()
    config_dir = config.get("_config_dir")
    if not p.is_absolute() and config_dir:
        p = Path(config_dir) / p
    return p


def load_env(env_file: str | Path | None, base_dir: str | Path = ".") -> dict[str, str]:
    """Load a dotenv file and merge it over os.environ.

    Values from the file take precedence. A named file that does not exist
    raises EnvFileNotFoundError.
    """
    env = dict(os.environ)
    if env_file:
        dotenv_path = Path(base_dir) / env_file
        if not dotenv_path.is_file():
            raise EnvFileNotFoundError(dotenv_path)
        dotenv_vars = dotenv_values(str(dotenv_path))
        env.update({k: v for k, v in dotenv_vars.items() if v is not None})
        logger.debug("loaded %d variable(s) from %s", len(dotenv_vars), dotenv_path)
    return env


def evaluate_expr(name: str) -> str:
    """Evaluate a {{expr:NAME}} generator."""
    if name == "uuid":
        return str(uuid.uuid4())
    if name == "now":
        return datetime.datetime.now(datetime.timezone.utc).isoformat()
    if name == "timestamp":
        return str(int(_time.time()))
    if name == "timestamp_ms":
        return str(int(_time.time() * 1000))
    raise InterpolationError(f"invalid expr: '{name}'")


def resolve_placeholders(text: str, env: dict[str, str]) -> str:
    """Resolve {{type:name}} placeholders in text.

    Supported:
    - {{env:VAR}} -> environment variable (error if unset)
    - {{expr:uuid}} -> random UUID v4
    - {{expr:now}} -> current UTC time, ISO-8601
    - {{expr:timestamp}} / {{expr:timestamp_ms}} -> unix time
    """
    if not isinstance(text, str):
        return text

    if "{{" in _PLACEHOLDER_RE.sub("", text):
        raise InterpolationError(f"unterminated placeholder in '{text}'")

    def _replace(m: re.Match) -> str:
        key = m.group(1).strip()
        kind, sep, name = key.partition(":")
        if not sep:
            raise InterpolationError(f"invalid placeholder '{m.group(0)}'")
        kind = kind.strip()
        name = name.strip()
        if kind == "env":
            if name not in env:
                raise InterpolationError(f"missing env var: '{name}'")
            return env[name]
        if kind == "expr":
            return evaluate_expr(name)
        raise InterpolationError(f"invalid placeholder type '{kind}' in '{m.group(0)}'")

    return _PLACEHOLDER_RE.sub(_replace, text)


def resolve_in_obj(obj: Any, env: dict[str, str]) -> Any:
    """Recursively resolve placeholders in dicts, lists, and strings."""
    if isinstance(obj, str):
        return resolve_placeholders(obj, env)
    if isinstance(obj, dict):
        return {k: resolve_in_obj(v, env) for k, v in obj.items()}
    if isinstance(obj, list):
        return [resolve_in_obj(item, env) for item in obj]
    return obj


def load_request(path: str | Path) -> dict:
    """Parse a .kuiper file into a request descriptor.

    Returns: {"name", "method", "uri", "headers", "params", "body"}.
    "headers" still holds null values; they are applied by the merge.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(path, f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(path, f"invalid UTF-8: {e}") from e
    except OSError as e:
        raise ParseError(path, f"cannot read file: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(path, "request must be a JSON object")

    for field in ("uri", "method"):
        if field not in data:
            raise ParseError(path, f"missing required field '{field}'")
        if not isinstance(data[field], str):
            raise ParseError(path, f"field '{field}' must be a string")

    headers = data.get("headers")
    headers = validate_headers(headers, path) if headers is not None else {}

    params = data.get("params")
    if params is None:
        params = {}
    elif not isinstance(params, dict) or not all(isinstance(v, str) for v in params.values()):
        raise ParseError(path, "params must be a JSON object of strings")

    logger.debug("parsed request at %s", path)
    return {
        "name": str(path),
        "method": data["method"].upper(),
        "uri": data["uri"],
        "headers": headers,
        "params": params,
        "body": data.get("body"),
    }


def find_request(
    path: str | Path,
    env: dict[str, str],
    root: str | Path | None = None,
    marker: str | None = ROOT_MARKER,
) -> dict:
    """Load a request file and resolve it into a sendable request.

    Steps: locate the file, parse it, merge headers.json overlays from the
    traversal root down to the file's directory, apply the request's own
    headers last, then substitute placeholders.
    """
    logger.debug("finding request at %s", path)
    request_path = resolve_request_path(path)
    request = load_request(request_path)

    traversal_root = find_traversal_root(request_path, root, marker)
    directories = ancestor_directories(request_path, traversal_root)
    logger.debug("scanning %d director(ies) from %s", len(directories), traversal_root)

    overlays = collect_overlays(directories)
    headers = merge_headers([*overlays, request["headers"]])

    try:
        resolved = {
            **request,
            "uri": resolve_placeholders(request["uri"], env),
            "params": {k: resolve_placeholders(v, env) for k, v in request["params"].items()},
            "headers": {k: resolve_placeholders(v, env) for k, v in headers.items()},
            "body": resolve_in_obj(request["body"], env),
        }
    except InterpolationError as e:
        raise InterpolationError(e.message, path=request_path) from e

    logger.debug("resolved request %s %s", resolved["method"], resolved["uri"])
    return resolved


def search_requests(directory: str | Path, term: str) -> list[Path]:
    """Breadth-first search for .kuiper files whose path contains term."""
    root = Path(directory)
    if not root.is_dir():
        raise KuiperError(f"Search directory '{directory}' is not a directory")

    matches: list[Path] = []
    queue = deque([root])
    while queue:
        current = queue.popleft()
        try:
            entries = sorted(current.iterdir())
        except OSError as e:
            logger.debug("skipping unreadable directory %s: %s", current, e)
            continue
        for entry in entries:
            if entry.is_symlink() and entry.is_dir():
                continue
            if entry.is_dir():
                queue.append(entry)
            elif entry.is_file() and entry.suffix == REQUEST_SUFFIX and term in str(entry):
                matches.append(entry)
    return matches
