"""Flux vault synchronization engine.

Keeps a local Markdown workspace consistent with a remote Flux store
(a plain path/content store with tombstones) over an unreliable network.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
