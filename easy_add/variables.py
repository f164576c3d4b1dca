"""Template variables and substitution.

Source URLs and in-archive paths are written as templates referencing
variables with the ``{{.name}}`` syntax, e.g.::

    https://github.com/org/tool/releases/download/{{.version}}/tool_{{.os}}_{{.arch}}.tar.gz

Two variables are always defined: ``os`` and ``arch``, named the way Go
release tooling names them (``linux``/``darwin``/``windows`` and
``amd64``/``arm64``/``armv7``...), since that is how most release archives
are labelled.  User supplied bindings take precedence over them.
"""
from __future__ import annotations

import logging
import platform
import re
import sys
from pathlib import Path
from typing import Dict, Mapping

import jinja2

from .errors import PlatformError, TemplateError

__all__ = [
    "substitute",
    "build_variables",
    "detect_os",
    "detect_arch",
]

logger = logging.getLogger(__name__)

CPUINFO_PATH = Path("/proc/cpuinfo")

_ENV = jinja2.Environment(
    variable_start_string="{{.",
    variable_end_string="}}",
    undefined=jinja2.StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)
# only the caller's variables resolve; range, lipsum and friends stay undefined
_ENV.globals.clear()

# Go allows blanks between "{{" and the field dot
_OPEN_RE = re.compile(r"\{\{\s*\.")
# once normalised, a "{{" without the dot, or any block or comment tag, is malformed
_MALFORMED_RE = re.compile(r"\{\{(?!\.)|\{%|\{#")

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "i386": "386",
    "i486": "386",
    "i586": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ppc64le": "ppc64le",
    "ppc64": "ppc64",
    "s390x": "s390x",
    "riscv64": "riscv64",
    "mips64": "mips64",
    "mips": "mips",
}

_ARM_VERSION_RE = re.compile(r"^armv(\d+)")
_CPUINFO_ARCH_RE = re.compile(r"^CPU architecture\s*:\s*(\d+)", re.MULTILINE)


def substitute(template: str, variables: Mapping[str, str]) -> str:
    """Render *template* against *variables*.

    Raises :class:`TemplateError` when the template is malformed or refers
    to a variable that is not defined.
    """
    source = _OPEN_RE.sub("{{.", template)
    malformed = _MALFORMED_RE.search(source)
    if malformed:
        raise TemplateError(
            f"malformed reference {malformed.group()!r} in {template!r}; expected {{{{.name}}}}",
            context={"template": template},
        )
    try:
        return _ENV.from_string(source).render(dict(variables))
    except jinja2.UndefinedError as e:
        raise TemplateError(
            f"undefined variable in {template!r}: {e.message}",
            context={"template": template, "defined": sorted(variables)},
        ) from e
    except jinja2.TemplateSyntaxError as e:
        raise TemplateError(
            f"malformed template {template!r}: {e.message}",
            context={"template": template},
        ) from e
    except (jinja2.TemplateError, TypeError) as e:
        raise TemplateError(f"unable to evaluate {template!r}: {e}", context={"template": template}) from e


def detect_os(sys_platform: str | None = None) -> str:
    """Return the host operating system identifier (``linux``, ``darwin``...)."""
    name = sys_platform or sys.platform
    if name.startswith("linux"):
        return "linux"
    if name in ("win32", "cygwin", "msys"):
        return "windows"
    for prefix in ("darwin", "freebsd", "openbsd", "netbsd", "aix"):
        if name.startswith(prefix):
            return prefix
    return platform.system().lower() or name


def detect_arch(
    machine: str | None = None,
    *,
    pointer_bits: int | None = None,
    cpuinfo_path: Path = CPUINFO_PATH,
) -> str:
    """Return the host CPU architecture identifier.

    32-bit ARM hosts get their architecture version appended (``armv6``,
    ``armv7``) since release archives are usually built per variant.  The
    version comes from the machine string when it carries one, otherwise
    from ``/proc/cpuinfo``; if neither says, :class:`PlatformError`.
    """
    machine = (machine if machine is not None else platform.machine()).lower()
    if pointer_bits is None:
        pointer_bits = 64 if sys.maxsize > 2**32 else 32

    # 32-bit userland on a 64-bit ARM kernel
    if machine in ("aarch64", "arm64") and pointer_bits == 32:
        return "armv7"

    if machine.startswith("arm") and machine not in _ARCH_ALIASES:
        return _arm_variant(machine, cpuinfo_path)

    if machine in _ARCH_ALIASES:
        return _ARCH_ALIASES[machine]
    if not machine:
        raise PlatformError("unable to determine CPU architecture")
    logger.debug("Unrecognized machine type %s, using it verbatim", machine)
    return machine


def _arm_variant(machine: str, cpuinfo_path: Path) -> str:
    m = _ARM_VERSION_RE.match(machine)
    if m:
        version = int(m.group(1))
    else:
        version = _cpuinfo_arm_version(cpuinfo_path)
        if version is None:
            raise PlatformError(
                f"unable to determine ARM variant for machine type {machine!r}",
                context={"machine": machine, "cpuinfo": str(cpuinfo_path)},
            )
    # armv8 cores running 32-bit code execute armv7 binaries
    return f"armv{min(version, 7)}"


def _cpuinfo_arm_version(cpuinfo_path: Path) -> int | None:
    try:
        text = cpuinfo_path.read_text(errors="replace")
    except OSError as e:
        logger.debug("Could not read %s: %s", cpuinfo_path, e)
        return None
    m = _CPUINFO_ARCH_RE.search(text)
    return int(m.group(1)) if m else None


def build_variables(user_vars: Mapping[str, str] | None = None) -> Dict[str, str]:
    """Overlay *user_vars* on the implicit variables; user values win.

    Implicit variables the user already binds are not detected at all, so an
    explicit ``arch`` binding sidesteps host detection.
    """
    variables = dict(user_vars or {})
    if "os" not in variables:
        variables["os"] = detect_os()
    if "arch" not in variables:
        variables["arch"] = detect_arch()
    return variables
