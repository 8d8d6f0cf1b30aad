"""
Stub generator — small POSIX ``sh`` wrappers in front of real binaries.

A stub exports the package's runtime environment, runs the real binary
as a child process, then puts every variable it touched back exactly
as it found it (unset variables are unset again) and exits with the
child's status.  Restoration also runs from ``trap`` on EXIT, HUP, INT
and TERM.

Lookup order at run time:

    1. dev-aware pre-check (optional): an activated project directory
       above ``pwd -P`` may provide its own copy of the binary
    2. the real binary, when it is still executable
    3. ``<resolver> -q project@version <name>``
    4. the same name on the ORIGINAL ``$PATH`` (never this stub), with a warning
    5. exit 127
"""

from __future__ import annotations

import logging
import os
import re
import shlex
from pathlib import Path

from shelfpad.core.models.install import StubScript
from shelfpad.core.models.package import EnvironmentMap
from shelfpad.core.services.install.env_map import is_path_like

logger = logging.getLogger(__name__)

STUB_DIRS = ("bin", "sbin")

DEFAULT_DATA_DIR_EXPR = '"${XDG_DATA_HOME:-$HOME/.local/share}/shelfpad"'

_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _q(value: object) -> str:
    return shlex.quote(str(value))


def _available(command: str) -> str:
    """Shell test for whether ``command`` can be run."""
    if "/" in command:
        return f"[ -x {_q(command)} ]"
    return f"command -v {_q(command)} >/dev/null 2>&1"


# ── Script sections ─────────────────────────────────────────────


def _capture_lines(names: list[str]) -> list[str]:
    lines = []
    for name in names:
        lines.append(
            f'if [ -n "${{{name}+x}}" ]; then '
            f'_ORIG_SET_{name}=1; _ORIG_{name}="${name}"; '
            f'else _ORIG_SET_{name}=; _ORIG_{name}=; fi'
        )
    return lines


def _restore_lines(names: list[str]) -> list[str]:
    lines = ["_shelfpad_restore() {"]
    for name in names:
        lines.append(
            f'  if [ -n "$_ORIG_SET_{name}" ]; then '
            f'{name}="$_ORIG_{name}"; export {name}; '
            f'else unset {name}; fi'
        )
    lines.append("}")
    lines.append("trap '_shelfpad_restore' EXIT")
    for signal, code in (("HUP", 129), ("INT", 130), ("TERM", 143)):
        lines.append(f"trap '_shelfpad_restore; trap - EXIT; exit {code}' {signal}")
    return lines


def _export_lines(env_vars: EnvironmentMap) -> list[str]:
    lines = []
    for name, value in env_vars.items():
        if is_path_like(name):
            # Prepend; keep whatever the caller already had
            lines.append(f'{name}={_q(value)}"${{_ORIG_{name}:+:$_ORIG_{name}}}"; export {name}')
        else:
            lines.append(f"{name}={_q(value)}; export {name}")
    return lines


def _finish_lines() -> list[str]:
    return [
        "_shelfpad_restore",
        "trap - EXIT",
        'exit "$_shelfpad_rc"',
    ]


def _dev_lines(name: str, stub_path: str, dev_command: str, data_dir_expr: str) -> list[str]:
    return [
        "_shelfpad_dev_dir() {",
        f"  {_available(dev_command)} || return 1",
        '  _shelfpad_d=$(pwd -P 2>/dev/null) || return 1',
        '  while [ -n "$_shelfpad_d" ] && [ "$_shelfpad_d" != / ]; do',
        f'    if [ -f {data_dir_expr}"/dev$_shelfpad_d/dev.activated" ]; then',
        "      printf '%s\\n' \"$_shelfpad_d\"",
        "      return 0",
        "    fi",
        '    _shelfpad_d=$(dirname "$_shelfpad_d")',
        "  done",
        "  return 1",
        "}",
        "if _shelfpad_dir=$(_shelfpad_dev_dir); then",
        f'  eval "$({_q(dev_command)} "$_shelfpad_dir" 2>/dev/null)"',
        f"  _shelfpad_alt=$(command -v {_q(name)} 2>/dev/null)",
        f'  if [ -n "$_shelfpad_alt" ] && [ "$_shelfpad_alt" != {_q(stub_path)} ]; then',
        '    "$_shelfpad_alt" "$@"',
        "    _shelfpad_rc=$?",
        *("    " + line for line in _finish_lines()),
        "  fi",
        "fi",
    ]


def _original_lookup_lines(name: str, stub_path: str) -> list[str]:
    return [
        "_shelfpad_original() {",
        '  _shelfpad_ifs="$IFS"; IFS=:',
        "  for _shelfpad_p in $_ORIG_PATH; do",
        f'    _shelfpad_c="$_shelfpad_p"/{_q(name)}',
        '    [ -x "$_shelfpad_c" ] && [ ! -d "$_shelfpad_c" ] || continue',
        f'    [ "$_shelfpad_c" = {_q(stub_path)} ] && continue',
        f'    [ "$_shelfpad_c" -ef {_q(stub_path)} ] && continue',
        '    [ "$_shelfpad_c" = "$0" ] && continue',
        '    IFS="$_shelfpad_ifs"',
        "    printf '%s\\n' \"$_shelfpad_c\"",
        "    return 0",
        "  done",
        '  IFS="$_shelfpad_ifs"',
        "  return 1",
        "}",
    ]


def _run_lines(stub: StubScript, resolver_command: str) -> list[str]:
    name = stub.binary_name
    target = _q(stub.target_executable_path)
    lines = [
        f"if [ -x {target} ]; then",
        f'  {target} "$@"',
        "  _shelfpad_rc=$?",
    ]
    if stub.project:
        spec = f"{stub.project}@{stub.version}" if stub.version else stub.project
        lines += [
            f"elif {_available(resolver_command)}; then",
            f'  {_q(resolver_command)} -q {_q(spec)} {_q(name)} "$@"',
            "  _shelfpad_rc=$?",
        ]
    lines += [
        "elif _shelfpad_found=$(_shelfpad_original); then",
        f'  echo "shelfpad: warning: {name}: using $_shelfpad_found from the original PATH" >&2',
        '  "$_shelfpad_found" "$@"',
        "  _shelfpad_rc=$?",
        "else",
        f'  echo "shelfpad: {name}: command not found" >&2',
        "  _shelfpad_rc=127",
        "fi",
    ]
    return lines


def render_stub(
    stub: StubScript,
    stub_path: Path,
    *,
    resolver_command: str = "pkgx",
    data_dir_expr: str = DEFAULT_DATA_DIR_EXPR,
    dev_command: str = "dev",
) -> str:
    """Render the full text of a stub script."""
    env_vars = {}
    for key, value in stub.env_vars.items():
        if _ENV_NAME.match(key):
            env_vars[key] = value
        else:
            logger.warning("Skipping invalid environment variable name %r for %s", key, stub.binary_name)

    names = list(env_vars)
    if "PATH" not in names:
        names.insert(0, "PATH")

    label = stub.project + (f"@{stub.version}" if stub.version else "")
    header = [
        "#!/bin/sh",
        f"# shelfpad stub for {stub.binary_name}" + (f" ({label})" if label else ""),
        f"# target: {stub.target_executable_path}",
        "",
    ]

    body = [
        *_capture_lines(names),
        "",
        *_restore_lines(names),
        "",
        *_export_lines(env_vars),
        "",
        *_original_lookup_lines(stub.binary_name, str(stub_path)),
        "",
        "_shelfpad_rc=127",
    ]
    if stub.is_dev_aware:
        body += ["", *_dev_lines(stub.binary_name, str(stub_path), dev_command, data_dir_expr)]
    body += ["", *_run_lines(stub, resolver_command), "", *_finish_lines()]

    return "\n".join(header + body) + "\n"


def create_stub(
    binary_name: str,
    real_binary_path: Path,
    env_vars: EnvironmentMap,
    target_dir: Path,
    *,
    dev_aware: bool = False,
    force: bool = True,
    project: str = "",
    version: str = "",
    resolver_command: str = "pkgx",
    data_dir_expr: str = DEFAULT_DATA_DIR_EXPR,
    dev_command: str = "dev",
) -> Path | None:
    """Write an executable stub at ``target_dir/binary_name``.

    An existing entry is replaced when ``force`` is set; otherwise the
    call is a no-op and returns None.

    Returns:
        The stub path, or None when an existing stub was kept.
    """
    stub_path = Path(target_dir) / binary_name
    if stub_path.exists() or stub_path.is_symlink():
        if not force:
            logger.debug("Stub %s exists; keeping it", stub_path)
            return None
        stub_path.unlink()

    stub = StubScript(
        binary_name=binary_name,
        target_executable_path=Path(real_binary_path),
        env_vars=dict(env_vars),
        is_dev_aware=dev_aware,
        project=project,
        version=version,
    )
    text = render_stub(
        stub,
        stub_path,
        resolver_command=resolver_command,
        data_dir_expr=data_dir_expr,
        dev_command=dev_command,
    )

    stub_path.parent.mkdir(parents=True, exist_ok=True)
    stub_path.write_text(text, encoding="utf-8")
    try:
        os.chmod(stub_path, 0o755)
    except (NotImplementedError, OSError) as e:
        logger.debug("Could not chmod %s: %s", stub_path, e)
    logger.info("Created stub %s → %s", stub_path, real_binary_path)
    return stub_path


def stub_target(path: Path) -> Path | None:
    """The target recorded in a stub's header, or None for non-stubs."""
    try:
        with open(path, encoding="utf-8") as handle:
            head = [handle.readline() for _ in range(3)]
    except (OSError, UnicodeDecodeError):
        return None
    if not head[0].startswith("#!/bin/sh") or not head[1].startswith("# shelfpad stub for "):
        return None
    if not head[2].startswith("# target: "):
        return None
    return Path(head[2][len("# target: "):].rstrip("\n"))
