"""
Shell code for entering and leaving a project environment.

The activation snippet captures every variable it is about to change
(once, on first activation) into ``_SHELFPAD_ORIG_<NAME>``, prepends
the environment's ``bin``/``sbin`` to PATH, and exports the stored
environment map.  It also defines ``_shelfpad_deactivate``, which the
shell hook calls on directory change: it refuses (returns 1) while
the physical working directory (``pwd -P``) is still inside the
project and otherwise restores the originals exactly.
"""

from __future__ import annotations

import shlex

from shelfpad.core.models.environment import ProjectEnvironment
from shelfpad.core.services.install.env_map import is_path_like

ORIG_PREFIX = "_SHELFPAD_ORIG_"
ORIG_SET_PREFIX = "_SHELFPAD_ORIG_SET_"


def _q(value: object) -> str:
    return shlex.quote(str(value))


def _managed_names(env: ProjectEnvironment) -> list[str]:
    names = [name for name in env.env if name.isidentifier()]
    if "PATH" not in names:
        names.insert(0, "PATH")
    return names


def _restore_statements(names: list[str], indent: str = "") -> list[str]:
    lines = []
    for name in names:
        lines.append(
            f'{indent}if [ -n "${{{ORIG_SET_PREFIX}{name}}}" ]; then '
            f'{name}="${{{ORIG_PREFIX}{name}}}"; export {name}; '
            f"else unset {name}; fi"
        )
    for name in names:
        lines.append(f"{indent}unset {ORIG_PREFIX}{name} {ORIG_SET_PREFIX}{name}")
    lines.append(f"{indent}unset _SHELFPAD_ACTIVE _SHELFPAD_PROJECT")
    return lines


def render_activation(env: ProjectEnvironment) -> str:
    """POSIX shell code that activates ``env`` in the current shell."""
    names = _managed_names(env)
    bins = ":".join(str(d) for d in env.bin_dirs)
    project = str(env.project_path) if env.project_path is not None else ""

    lines = [f"# shelfpad: activate {env.project_name} ({env.hash})"]

    lines.append('if [ -z "${_SHELFPAD_ACTIVE+x}" ]; then')
    for name in names:
        lines.append(
            f'  if [ -n "${{{name}+x}}" ]; then '
            f'{ORIG_SET_PREFIX}{name}=1; {ORIG_PREFIX}{name}="${name}"; '
            f"else {ORIG_SET_PREFIX}{name}=; {ORIG_PREFIX}{name}=; fi"
        )
    lines.append("fi")
    lines.append(f"_SHELFPAD_ACTIVE={_q(env.hash)}")
    lines.append(f"_SHELFPAD_PROJECT={_q(project)}")

    path_value = bins
    if "PATH" in env.env:
        path_value = f"{bins}:{env.env['PATH']}"
    lines.append(f'PATH={_q(path_value)}"${{{ORIG_PREFIX}PATH:+:${ORIG_PREFIX}PATH}}"; export PATH')

    for name in names:
        if name == "PATH":
            continue
        value = env.env[name]
        if is_path_like(name):
            lines.append(
                f'{name}={_q(value)}"${{{ORIG_PREFIX}{name}:+:${ORIG_PREFIX}{name}}}"; export {name}'
            )
        else:
            lines.append(f"{name}={_q(value)}; export {name}")

    lines.append("_shelfpad_deactivate() {")
    if project:
        lines += [
            '  case "$(pwd -P)/" in',
            f"    {_q(project.rstrip('/') + '/')}*) return 1 ;;",
            "  esac",
        ]
    lines += _restore_statements(names, indent="  ")
    lines.append("  unset -f _shelfpad_deactivate")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_deactivation(env: ProjectEnvironment) -> str:
    """POSIX shell code that unconditionally restores the originals."""
    names = _managed_names(env)
    lines = [f"# shelfpad: deactivate {env.project_name} ({env.hash})"]
    lines.append('if [ -n "${_SHELFPAD_ACTIVE+x}" ]; then')
    lines += _restore_statements(names, indent="  ")
    lines.append("fi")
    lines.append("unset -f _shelfpad_deactivate 2>/dev/null || true")
    return "\n".join(lines) + "\n"
