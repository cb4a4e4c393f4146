"""Directory snapshots with deduplicated, compressed content and safe restores."""

from .constants import TIMEMACHINE_VERSION as __version__

__all__ = ["__version__"]
