"""kuiper output - formatting of responses and resolved requests."""

import json


def _dump(value) -> str:
    if isinstance(value, dict | list):
        return json.dumps(value, indent=2)
    return str(value)


def format_output(
    result,  # RequestResult from executor.py
    verbose: bool = False,
    raw: bool = False,
) -> str:
    """Format the request result for CLI output.

    Default:  STATUS / TIME / BODY
    verbose:  adds HEADERS
    raw:      body only, for piping
    """
    if result.error:
        return f"ERROR: {result.error}"

    if raw:
        return _dump(result.body) if result.body is not None else ""

    lines: list[str] = []
    status = f"STATUS: {result.status_code}"
    if result.reason:
        status += f" {result.reason}"
    lines.append(status)
    lines.append(f"TIME: {int(result.elapsed_ms)}ms")

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    if result.body not in (None, ""):
        lines.append("BODY:")
        lines.append(_dump(result.body))

    return "\n".join(lines)


def format_request(request: dict) -> str:
    """Format a resolved request for --dry-run."""
    lines = [f"{request['method']} {request['uri']}"]
    if request.get("params"):
        lines.append("PARAMS:")
        for key, value in request["params"].items():
            lines.append(f"  {key}={value}")
    if request.get("headers"):
        lines.append("HEADERS:")
        for key, value in sorted(request["headers"].items()):
            lines.append(f"  {key}: {value}")
    if request.get("body") is not None:
        lines.append("BODY:")
        lines.append(_dump(request["body"]))
    return "\n".join(lines)
