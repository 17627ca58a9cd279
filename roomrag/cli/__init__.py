"""Command-line tools for roomrag.

- ``python -m roomrag.cli`` (or the ``roomrag`` console script) -- index
  files and workspace exports, search, ask, inspect and clear rooms.
"""
