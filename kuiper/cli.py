"""kuiper CLI - send the HTTP request described by a .kuiper file."""

import logging
import sys
from pathlib import Path

import click

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

TOOL_HELP = """\
kuiper — send HTTP requests described by .kuiper files.

\b
USAGE
─────
  kuiper requests/users/get_user.kuiper
  kuiper requests/users/get_user.kuiper -e .env
  kuiper --search user requests/

\b
REQUEST FILE FORMAT (*.kuiper)
──────────────────────────────
  \b
  {
    "uri": "http://{{env:API_HOST}}/api/users",
    "method": "POST",
    "headers": {"X-Request-Id": "{{expr:uuid}}", "Accept": null},
    "params": {"verbose": "true"},
    "body": {"name": "test", "created": "{{expr:now}}"}
  }

  uri and method are required. A null header removes a header
  inherited from a headers.json file.

\b
HEADER INHERITANCE (headers.json)
─────────────────────────────────
  Every directory from the traversal root down to the request file may
  hold a headers.json object. They are merged top-down, deeper
  directories overriding shallower ones, then the request's own headers
  are applied last. A null value removes the header at that layer.
  Header names match case-insensitively; the deepest spelling is sent.

  Traversal root resolution:
    1. --root flag, or root in the config (relative to config file)
    2. nearest ancestor directory holding a .kuiperroot file
    3. filesystem root

\b
PLACEHOLDERS
────────────
  {{env:NAME}}            environment variable (error if unset)
  {{expr:uuid}}           random UUID v4
  {{expr:now}}            current UTC time, ISO-8601
  {{expr:timestamp}}      unix seconds ({{expr:timestamp_ms}} for ms)

  Placeholders are resolved in the uri, params, headers and body.
  -e FILE loads a dotenv file on top of the process environment.

\b
OUTPUT FORMAT
─────────────
    STATUS: 200 OK
    TIME: 45ms
    BODY:
    {"id": 1, "name": "test"}

  --verbose adds response headers, --raw prints the body only,
  --dry-run prints the resolved request without sending it.
  Exit code is 0 whenever a response is received, whatever its status.

\b
CONFIG FILE FORMAT (.kuiper.yaml)
─────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .kuiper.yaml / .kuiper.yml / kuiper.yaml / kuiper.yml in CWD
    3. ~/.kuiper/config.yaml (global)

  \b
  defaults:
    root: requests              # traversal root for headers.json
    marker: .kuiperroot         # boundary marker file, null to disable
    env_file: .env              # dotenv file loaded on every run
    timeout: 30                 # seconds
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("path", required=False)
@click.option(
    "-e",
    "--env-file",
    "env_file",
    default=None,
    help="Dotenv file with values for {{env:NAME}} placeholders.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .kuiper.yaml in CWD, then ~/.kuiper/config.yaml.",
)
@click.option(
    "--root",
    "root_override",
    default=None,
    help="Topmost directory scanned for headers.json. Must contain the request file.",
)
@click.option(
    "--timeout",
    type=int,
    default=None,
    help="Request timeout in seconds. Default: 30.",
)
@click.option(
    "--verbose",
    is_flag=True,
    default=False,
    help="Include response headers in output.",
)
@click.option(
    "--raw",
    is_flag=True,
    default=False,
    help="Output the response body only. Useful for piping.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the resolved request instead of sending it.",
)
@click.option(
    "--search",
    "search_term",
    default=None,
    metavar="TERM",
    help="List .kuiper files under PATH (default: CWD) whose path contains TERM.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="KUIPER_LOG_LEVEL",
    show_default=True,
    help="Diagnostic log level, written to stderr.",
)
def main(
    path,
    env_file,
    config_file,
    root_override,
    timeout,
    verbose,
    raw,
    dry_run,
    search_term,
    log_level,
):
    """Send the HTTP request described by a .kuiper file."""
    from kuiper.core import (
        config_path_value,
        find_request,
        load_config,
        load_env,
        load_request,
        resolve_config_path,
        search_requests,
    )
    from kuiper.errors import KuiperError
    from kuiper.executor import execute_request
    from kuiper.headers import ROOT_MARKER
    from kuiper.output import format_output, format_request

    _configure_logging(log_level)

    try:
        # --- Load config ---
        config_path = resolve_config_path(config_file)
        config = load_config(config_path)
        defaults = config.get("defaults", {})

        if search_term is not None:
            _cmd_search(search_term, path or ".", search_requests, load_request)
            return

        if not path:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            ctx.exit(1)

        if env_file:
            env = load_env(env_file)
        else:
            env = load_env(config_path_value(config, "env_file"))

        root = root_override or config_path_value(config, "root")
        marker = defaults.get("marker", ROOT_MARKER)
        request = find_request(path, env, root=root, marker=marker)
    except KuiperError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    if dry_run:
        click.echo(format_request(request))
        return

    result = execute_request(
        method=request["method"],
        url=request["uri"],
        headers=request["headers"],
        params=request["params"],
        body=request["body"],
        timeout=_resolve_timeout(timeout, defaults.get("timeout")),
    )
    if result.error:
        click.echo(f"ERROR: {result.error}", err=True)
        sys.exit(1)

    click.echo(format_output(result, verbose=verbose, raw=raw))


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_search(term, directory, search_requests, load_request):
    from kuiper.errors import KuiperError

    matches = search_requests(directory, term)
    if not matches:
        click.echo(f"No requests matching '{term}' in: {Path(directory).resolve()}")
        return

    click.echo(f"Requests from: {Path(directory).resolve()}")
    click.echo(f"{len(matches)} matching '{term}':\n")
    for match in matches:
        click.echo(f"  {match}")
        try:
            req = load_request(match)
        except KuiperError as e:
            click.echo(f"    (invalid: {e})")
            continue
        click.echo(f"    {req['method']} {req['uri']}")


# ── Helpers ──────────────────────────────────────────────────────────────


def _configure_logging(level_name):
    """Route diagnostic logs to stderr at the requested level."""
    level = getattr(logging, level_name.upper())
    logging.basicConfig(format=LOG_FORMAT, level=level, stream=sys.stderr, force=True)
    if level > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def _resolve_timeout(*sources, default=30):
    """Return the first truthy timeout from sources, or default."""
    for t in sources:
        if t:
            return t
    return default
