"""Invocation configuration.

Built once from the command line and handed to :func:`easy_add.pipeline.run`;
nothing downstream mutates it.
"""
from __future__ import annotations

import types
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Tuple

from .transport import DEFAULT_TIMEOUT

__all__ = ["DEFAULT_DESTINATION", "ExtractConfig", "parse_var_bindings"]

DEFAULT_DESTINATION = Path("/usr/local/bin")


@dataclass(frozen=True)
class ExtractConfig:
    """What to download, which entry to take and where to put it.

    ``from_template`` and ``file_template`` may reference ``variables`` as
    well as the implicit ``os`` and ``arch``.
    """

    from_template: str
    file_template: str
    destination: Path = DEFAULT_DESTINATION
    variables: Mapping[str, str] = field(default_factory=dict)
    mkdirs: bool = False
    ca_files: Tuple[Path, ...] = ()
    timeout: float | None = DEFAULT_TIMEOUT

    def __post_init__(self):
        object.__setattr__(self, "destination", Path(self.destination))
        object.__setattr__(self, "variables", types.MappingProxyType(dict(self.variables)))
        object.__setattr__(self, "ca_files", tuple(Path(p) for p in self.ca_files))


def parse_var_bindings(bindings: Iterable[str]) -> dict[str, str]:
    """Turn ``name=value`` strings into a dict; later bindings win.

    The value may itself contain ``=``.  Raises ValueError for a binding
    without ``=`` or with an empty name.
    """
    variables: dict[str, str] = {}
    for binding in bindings:
        name, sep, value = binding.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"invalid variable binding {binding!r}, expected name=value")
        variables[name] = value
    return variables
