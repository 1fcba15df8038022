"""Releaseforge: parallel multi-platform builds, one verified release.

Resolves a version once, fans out one packaging task per platform,
waits on a barrier for every task, writes a SHA-256 manifest over the
closed artifact set, verifies it, and publishes a draft release that is
finalized only when every expected asset is attached.
"""

__version__ = "0.1.0"
__description__ = "Multi-platform release pipeline with checksum verification"

from releaseforge.core.pipeline import ReleasePipeline
from releaseforge.cli.app import app as cli

__all__ = ["ReleasePipeline", "cli", "__version__"]
