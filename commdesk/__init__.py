"""
commdesk - client and commission records kept as plain JSON files.

Layered architecture:

  commdesk/repositories/: pure I/O: path layout, reading and writing the
                          per-record JSON files under the data root.
  commdesk/services/:     business logic: field validation, image intake,
                          data-directory maintenance.

``commdesk_cli.py`` is the integration point: it resolves the settings once,
builds the repositories and services, and exposes every operation as a
sub-command.
"""

__version__ = '0.4.0'
