"""OPA Bundle Builder — republish labelled ConfigMaps as one OPA policy bundle.

Watches policy ConfigMaps, materializes their entries on disk, packages the
accumulated tree into ``bundle.tar.gz`` and atomically swaps it into the
location the bundle server reads from.
"""

__version__ = "0.1.0"
