"""
stockroom_config -- runtime settings and first-run defaults.

Responsibility:
    ``Settings.from_env()`` reads the environment; ``load_defaults()``
    parses the packaged ``defaults.yaml``.  Kernel services never read
    files or the environment themselves; they receive the parsed values
    from their caller.
"""

from stockroom_config.loader import SeedAdmin, StockroomDefaults, load_defaults
from stockroom_config.settings import Settings

__all__ = ["SeedAdmin", "Settings", "StockroomDefaults", "load_defaults"]
