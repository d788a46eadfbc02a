"""Schema, migrations, data helpers and HTTP endpoints for EVE Online community authentication and groups."""

__version__ = "0.1.0"