"""
HttpMock Callback Registry

Custom predicates and response transforms cross the process boundary by
name, never as code. Each side owns a registry that maps names to callables:

- explicitly registered names (``registry.register('is-admin', fn)``)
- import paths of module-level functions (``'myproject.mocks:is_admin'``),
  imported on demand

Lambdas, closures and nested functions have no import path; they must be
registered under a name on both sides.

The server builds its registry with ``allow_import=False``: a payload can only
name callbacks the server registered itself (in code or via
``MockConfig.callbacks``), never an arbitrary importable callable.
"""

import importlib
import logging
from typing import Any, Callable, Dict, Optional, Union

from ..common.errors import CallbackResolutionError, UnportableCallbackError
from ..matching.predicates import CallbackRef

logger = logging.getLogger("httpmock.transport")


def import_path_of(fn: Callable) -> Optional[str]:
    """
    Derive the ``module:qualname`` import path of a module-level callable.

    Returns:
        Import path, or None when the callable cannot be imported by path
    """
    module = getattr(fn, '__module__', None)
    qualname = getattr(fn, '__qualname__', None)
    if not module or not qualname or module == '__main__' or '<' in qualname:
        return None
    return f"{module}:{qualname}"


def import_callable(path: str) -> Callable:
    """
    Import ``module:attr.attr`` and return the callable it names.

    Raises:
        CallbackResolutionError: If the module or attribute is missing, or
            the target is not callable
    """
    module_name, sep, attr_path = path.partition(':')
    if not sep or not module_name or not attr_path:
        raise CallbackResolutionError(f"Invalid callback import path: {path!r}")

    try:
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split('.'):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as e:
        raise CallbackResolutionError(f"Cannot import callback {path!r}: {e}") from e

    if not callable(target):
        raise CallbackResolutionError(f"Callback {path!r} is not callable")
    return target


class CallbackRegistry:
    """
    Explicit name -> callable mapping, one per controller or server.

    Example:
        registry = CallbackRegistry()

        @registry.register('teapot')
        def teapot(request, response):
            response.status = 418

        ref = registry.reference('teapot')
    """

    def __init__(
        self,
        callbacks: Optional[Dict[str, Union[Callable, str]]] = None,
        allow_import: bool = True
    ):
        """
        Initialize registry.

        Args:
            callbacks: Initial name -> callable (or import path) mapping
            allow_import: Resolve unregistered ``module:qualname`` names by
                importing them (controller side only)
        """
        self.allow_import = allow_import
        self._callbacks: Dict[str, Callable] = {}
        self._paths: Dict[str, str] = {}
        for name, target in (callbacks or {}).items():
            self.register(name, target)

    def register(self, name: str, target: Union[Callable, str, None] = None):
        """
        Register a callable (or an import path resolved later) under ``name``.

        Can be used as a decorator when ``target`` is omitted.
        """
        if target is None:
            def decorator(fn: Callable) -> Callable:
                self.register(name, fn)
                return fn
            return decorator

        if isinstance(target, str):
            self._paths[name] = target
        elif callable(target):
            self._callbacks[name] = target
        else:
            raise TypeError(f"Callback '{name}' must be callable or an import path")
        logger.debug(f"Registered callback '{name}'")
        return target

    def unregister(self, name: str):
        self._callbacks.pop(name, None)
        self._paths.pop(name, None)

    def __contains__(self, name: str) -> bool:
        return name in self._callbacks or name in self._paths

    def name_of(self, fn: Callable) -> Optional[str]:
        """Return the registered name of ``fn``, if any."""
        for name, registered in self._callbacks.items():
            if registered is fn:
                return name
        return None

    def resolve(self, name: str) -> Callable:
        """
        Resolve a callback name to a callable.

        Lookup order: registered callables, registered import paths, then
        ``name`` itself treated as an import path when ``allow_import`` is set.

        Raises:
            CallbackResolutionError: If nothing is found
        """
        if name in self._callbacks:
            return self._callbacks[name]
        if name in self._paths:
            fn = import_callable(self._paths[name])
            self._callbacks[name] = fn
            return fn
        if ':' in name and self.allow_import:
            return import_callable(name)
        raise CallbackResolutionError(f"Unknown callback: {name!r}")

    def reference(self, target: Union[Callable, str]) -> CallbackRef:
        """
        Build a transferable reference to a callback.

        Args:
            target: Registered name, import path, or callable

        Returns:
            CallbackRef carrying the name (and the callable when known locally)

        Raises:
            UnportableCallbackError: If a callable is neither registered nor
                importable by path
        """
        if isinstance(target, str):
            try:
                return CallbackRef(target, self.resolve(target))
            except CallbackResolutionError:
                # Known only to the server side
                return CallbackRef(target)

        if not callable(target):
            raise TypeError(f"Callback must be callable or a name, got {type(target).__name__}")

        name = self.name_of(target)
        if name is not None:
            return CallbackRef(name, target)

        path = import_path_of(target)
        if path is None:
            raise UnportableCallbackError(
                f"{target!r} cannot be referenced from another process. "
                f"Use a module-level function or register it under a name on both sides."
            )
        try:
            resolved = import_callable(path)
        except CallbackResolutionError as e:
            raise UnportableCallbackError(str(e)) from e
        if resolved is not target:
            raise UnportableCallbackError(f"Import path {path!r} does not resolve to {target!r}")
        return CallbackRef(path, target)

    def bind(self, ref: CallbackRef) -> CallbackRef:
        """Return ``ref`` with its callable resolved in this registry."""
        return CallbackRef(ref.name, self.resolve(ref.name))
