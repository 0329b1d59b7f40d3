"""Capability discovery via Python entry points.

Backends register themselves in their pyproject.toml:

```toml
[project.entry-points."facetrace.detectors"]
clnf = "mypackage.clnf:ClnfDetector"

[project.entry-points."facetrace.analyzers"]
au = "mypackage.analyser:AuAnalyzer"
```

facetrace itself registers its ``dummy`` backends in every group.

Example:
    >>> DetectorClass = load_detector("dummy")
    >>> detector = DetectorClass()
"""

from importlib.metadata import entry_points
from typing import Any, Dict

DETECTORS_GROUP = "facetrace.detectors"
GAZE_GROUP = "facetrace.gaze"
ANALYZERS_GROUP = "facetrace.analyzers"


def _get_entry_points(group: str) -> Dict[str, Any]:
    """Map entry point names to entry points for a group."""
    return {ep.name: ep for ep in entry_points(group=group)}


def discover(group: str) -> Dict[str, Any]:
    """Discover the backends registered in an entry point group."""
    return _get_entry_points(group)


def _load(group: str, name: str) -> Any:
    available = discover(group)
    if name not in available:
        raise KeyError(
            f"No backend registered as '{name}' in '{group}'. "
            f"Available: {sorted(available.keys())}"
        )
    return available[name].load()


def load_detector(name: str) -> Any:
    """Load a landmark detector class by name.

    Raises:
        KeyError: If no detector with the given name is registered.
        ImportError: If the detector cannot be loaded.
    """
    return _load(DETECTORS_GROUP, name)


def load_gaze_estimator(name: str) -> Any:
    """Load a gaze estimator class by name."""
    return _load(GAZE_GROUP, name)


def load_analyzer(name: str) -> Any:
    """Load a face analyser class by name."""
    return _load(ANALYZERS_GROUP, name)


__all__ = [
    "DETECTORS_GROUP",
    "GAZE_GROUP",
    "ANALYZERS_GROUP",
    "discover",
    "load_detector",
    "load_gaze_estimator",
    "load_analyzer",
]
