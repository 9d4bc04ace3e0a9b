"""kuiper headers - ancestor directory traversal and headers.json merging."""

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path

from kuiper.errors import ParseError, PathError, RequestNotFoundError

logger = logging.getLogger(__name__)

HEADERS_FILE = "headers.json"
ROOT_MARKER = ".kuiperroot"

Headers = dict[str, str | None]


def resolve_request_path(path: str | Path) -> Path:
    """Return the absolute path of a request file.

    Raises RequestNotFoundError if the path is missing, is not a regular
    file, or cannot be read by the current user.
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise RequestNotFoundError(path)
    if not p.is_file():
        raise RequestNotFoundError(path, "is not a file")
    if not os.access(p, os.R_OK):
        raise RequestNotFoundError(path, "is not readable")
    return p.resolve()


def find_traversal_root(
    request_path: Path,
    root: str | Path | None = None,
    marker: str | None = ROOT_MARKER,
) -> Path:
    """Find the topmost directory scanned for headers.json.

    Resolution order:
      1. Explicit root (hard - must be an ancestor of the request file)
      2. Nearest ancestor directory holding the marker file
      3. Filesystem root
    """
    parent = request_path.parent
    if root is not None:
        root_path = Path(root).expanduser().resolve()
        if root_path != parent and root_path not in parent.parents:
            raise PathError(
                f"Traversal root '{root_path}' is not an ancestor of '{request_path}'",
            )
        return root_path

    if marker:
        for directory in (parent, *parent.parents):
            if (directory / marker).is_file():
                logger.debug("found root marker %s in %s", marker, directory)
                return directory

    return Path(parent.anchor)


def ancestor_directories(request_path: Path, root: Path) -> list[Path]:
    """List directories from root down to the request file's directory.

    Both ends are inclusive. The request path must already be absolute and
    resolved, and root must be one of its ancestors.
    """
    chain: list[Path] = []
    for directory in (request_path.parent, *request_path.parent.parents):
        chain.append(directory)
        if directory == root:
            break
    else:
        raise PathError(f"Traversal root '{root}' is not an ancestor of '{request_path}'")
    chain.reverse()
    return chain


def validate_headers(data, path) -> Headers:
    """Check that a parsed JSON value is a mapping of str to str-or-null."""
    if not isinstance(data, dict):
        raise ParseError(path, "headers must be a JSON object")
    for name, value in data.items():
        if value is not None and not isinstance(value, str):
            raise ParseError(
                path,
                f"header '{name}' must be a string or null, got {type(value).__name__}",
            )
    return data


def read_headers_file(path: Path) -> Headers:
    """Read one headers.json overlay. A missing file is an empty overlay."""
    if not path.is_file():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ParseError(path, f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise ParseError(path, f"invalid UTF-8: {e}") from e
    except OSError as e:
        raise ParseError(path, f"cannot read file: {e}") from e
    headers = validate_headers(data, path)
    logger.debug("read %d header(s) from %s", len(headers), path)
    return headers


def collect_overlays(directories: Iterable[Path]) -> list[Headers]:
    """Read the headers.json of each directory, keeping directory order."""
    return [read_headers_file(Path(d) / HEADERS_FILE) for d in directories]


def merge_headers(layers: Iterable[Headers]) -> dict[str, str]:
    """Fold header layers left to right.

    Later layers override earlier ones. A None value removes the key from
    what has been accumulated so far; a later layer may set it again.
    Names compare case-insensitively, the last layer's spelling is kept.
    """
    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        for name, value in layer.items():
            key = name.lower()
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = (name, value)
    return dict(merged.values())
