"""Deferred imports for optional backends.

Backends such as Motor, redis and Taskiq are only imported when the
corresponding implementation is actually instantiated.
"""

from collections.abc import Callable
from importlib import import_module

__all__ = [
    "lazy_import",
]


def lazy_import(
    module_name: str,
    name: str | None = None,
    *,
    extra: str | None = None,
) -> Callable[[], object]:
    """Lazily import a module or an attribute from a module.

    Args:
        module_name: Dotted module path
        name: Attribute to fetch from the module, or None for the module
        extra: Package extra that provides the module, used in the error hint

    Returns:
        Zero-argument loader
    """

    def _load() -> object:
        try:
            mod = import_module(module_name)
        except ImportError as e:
            if extra is None:
                raise
            raise ImportError(
                f"{module_name} is required for this backend; "
                f"install it with 'pip install medtopics[{extra}]'"
            ) from e
        return getattr(mod, name) if name else mod

    return _load
