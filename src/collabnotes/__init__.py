"""
collabnotes - note identity, revision and permission management.

This package implements the engine behind collaboratively edited notes:
notes are addressed by id or alias, keep an append-only history of content
snapshots, attribute authorship to spans of content and carry per-user and
per-group edit grants.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("collabnotes")
except PackageNotFoundError:
    __version__ = "0.1.0"
