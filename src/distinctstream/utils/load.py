import importlib
import importlib.metadata as md
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

import yaml

from distinctstream.plugins import TRANSFORMS_EP


_BUILTIN_EP_FALLBACKS: dict[tuple[str, str], str] = {
    (TRANSFORMS_EP, "distinct_until_changed"): "distinctstream.transforms.stream.distinct:DistinctUntilChangedTransform",
}


def _load_from_spec(spec: str):
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Invalid import spec: {spec!r} (expected 'module:attr')")
    module = importlib.import_module(module_name)
    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ImportError(f"Attribute {attr!r} not found in {module_name!r}") from exc
    return target


def load_callable(spec: str) -> Callable[..., Any]:
    """Resolve a ``module:attr`` string (dotted attrs allowed) to a callable."""
    fn = _load_from_spec(spec)
    if not callable(fn):
        raise TypeError(f"{spec!r} resolved to a non-callable {type(fn).__name__}")
    return fn


@lru_cache
def load_ep(group: str, name: str):
    """Load the object registered as ``name`` in entry point ``group``.

    Names missing from the installed metadata are looked up in
    ``_BUILTIN_EP_FALLBACKS`` so a source checkout works uninstalled.
    """
    found = list(md.entry_points().select(group=group, name=name))
    if len(found) == 1:
        return found[0].load()
    if len(found) > 1:
        targets = ", ".join(sorted(ep.value for ep in found))
        raise ValueError(f"Ambiguous entry point '{name}' in '{group}': {targets}")
    spec = _BUILTIN_EP_FALLBACKS.get((group, name))
    if spec is not None:
        return _load_from_spec(spec)
    known = {ep.name for ep in md.entry_points().select(group=group)}
    known.update(n for g, n in _BUILTIN_EP_FALLBACKS if g == group)
    raise ValueError(
        f"No entry point '{name}' in '{group}'. Available: {', '.join(sorted(known)) or '(none)'}"
    )


def load_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping; an empty document reads as ``{}``."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"YAML file not found: {path}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"Top-level YAML in {path} must be a mapping, got {type(data).__name__}")
    return data
