"""
Rendering Engine Monitor.

Background health and performance monitoring for a pool of interchangeable
document-rendering engines. The monitor polls an injected engine manager,
keeps a bounded per-engine metrics history, raises and tracks alerts, and
exports time-windowed metrics as JSON or CSV.
"""

__version__ = "0.1.0"
