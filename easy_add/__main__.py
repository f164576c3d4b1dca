"""
Provides the same behaviour as invoking the ``easy-add`` console script,
for images that only ship a Python interpreter.
"""
from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
