"""Modules: classes that export values to the providers importing them.

A module exports values in two ways. A constructor parameter annotated with
``Annotated[T, Export(...)]`` exports the stored attribute (optionally passed
through a one-argument factory). A class decorated with :func:`export`
exports a type built by a factory that receives the module instance followed
by annotated parameters requested from the provider.

The types a module exports from the class itself are recorded in the module
registry under the module's public path.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Annotated, Any, Callable, TypeVar, get_args, get_origin

from .injection import (
    _MISSING,
    _checked_parameters,
    _describe_parameters,
    _Parameter,
    _ParameterKind,
)
from .registry import ModuleRecord, ModuleRegistry, cache_path

__all__ = ["Export", "module", "export", "exports_of"]

_MODULE_ATTR = "__provisio_module__"
_EXPORTS_ATTR = "__provisio_exports__"
_SELF = "Self"

C = TypeVar("C", bound=type)

_registries: dict[Path, ModuleRegistry] = {}
_registries_lock = threading.Lock()


@dataclass(frozen=True)
class Export:
    """An exported type and how to produce its value from a module.

    ``attribute`` is set for exports of a stored field; otherwise ``factory``
    is called with the module and its injected inputs.
    """

    type_: Any = None
    factory: Callable[..., Any] | None = None
    attribute: str | None = None

    def __post_init__(self) -> None:
        if self.factory is not None and not callable(self.factory):
            raise TypeError(f"Export factory must be callable, got {self.factory!r}")

    def produce(self, module: Any, provider: Any) -> Any:
        """The exported value of ``module``, with inputs from ``provider``."""
        if self.attribute is not None:
            value = getattr(module, self.attribute)
            return value if self.factory is None else self.factory(value)
        if self.factory is None:
            raise TypeError(f"Export of {self.type_!r} has no factory")
        params = _checked_parameters(self.factory, evaluate=True)
        if not params or params[0].kind is _ParameterKind.KEYWORD_ONLY:
            raise TypeError(
                "Missing factory input: the first parameter receives the module."
            )
        args = [module]
        kwargs = {}
        for param in params[1:]:
            if param.annotation is _MISSING:
                if param.has_default:
                    continue
                raise TypeError(f"Invalid input: {param.name} has no type annotation")
            hint = param.annotation
            if get_origin(hint) is Annotated:
                hint = get_args(hint)[0]
            value = provider.provide(hint)
            if param.kind is _ParameterKind.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[param.name] = value
        return self.factory(*args, **kwargs)


def _require_class(target: Any, decorator: str) -> None:
    if not isinstance(target, type):
        raise TypeError(f"@{decorator} must be used on a class, got {target!r}")


def _parameters(factory: Callable[..., Any]) -> list[_Parameter]:
    try:
        return _describe_parameters(factory, evaluate=False)
    except TypeError as error:
        raise TypeError(f"Unable to inspect factory {factory!r}: {error}") from error


def _check_field_factory(factory: Callable[..., Any]) -> None:
    params = _parameters(factory)
    if not params:
        raise TypeError("Missing factory input.")
    if len(params) > 1:
        raise TypeError("More than one input found")


def _type_name(type_: Any) -> str:
    if isinstance(type_, type):
        return f"{type_.__module__}.{type_.__qualname__}"
    return repr(type_)


def _substitute(hint: Any, bindings: dict[Any, Any]) -> Any:
    if not bindings:
        return hint
    if isinstance(hint, TypeVar):
        return bindings.get(hint, hint)
    params = getattr(hint, "__parameters__", ())
    if params and get_origin(hint) is not None:
        return hint[tuple(bindings.get(p, p) for p in params)]
    return hint


def _registry() -> ModuleRegistry:
    directory = cache_path().resolve()
    with _registries_lock:
        registry = _registries.get(directory)
        if registry is None:
            registry = _registries[directory] = ModuleRegistry(directory)
        return registry


def _register(cls: type) -> None:
    record = ModuleRecord(
        path=vars(cls)[_MODULE_ATTR],
        exported_types=tuple(_type_name(e.type_) for e in vars(cls).get(_EXPORTS_ATTR, ())),
        package=cls.__module__.split(".")[0],
        program="__main__" if cls.__module__ == "__main__" else None,
    )
    _registry().ensure(record)


def _field_exports(cls: type, bindings: dict[Any, Any]) -> list[Export]:
    found = []
    for param in _describe_parameters(cls, evaluate=True):
        hint = param.annotation
        if get_origin(hint) is not Annotated:
            continue
        base, *metadata = get_args(hint)
        for marker in metadata:
            if not isinstance(marker, Export):
                continue
            if marker.factory is not None:
                _check_field_factory(marker.factory)
            type_ = base if marker.type_ is None else marker.type_
            found.append(
                replace(marker, type_=_substitute(type_, bindings), attribute=param.name)
            )
    return found


def module(target: C | None = None, *, path: str | None = None) -> Any:
    """Declare a class as a module, optionally under a public dotted ``path``.

    ``Self`` in the path stands for the class name; without a path the class
    name is used. Usable as ``@module`` or ``@module(path=...)``.
    """
    if path is not None and not isinstance(path, str):
        raise TypeError(f"Invalid public module path: {path!r}")

    def decorate(cls: C) -> C:
        _require_class(cls, "module")
        declared = cls.__name__ if path is None else path
        resolved = ".".join(
            cls.__name__ if segment.strip() == _SELF else segment.strip()
            for segment in declared.split(".")
        )
        ModuleRecord(path=resolved).key()
        setattr(cls, _MODULE_ATTR, resolved)
        try:
            _field_exports(cls, {})
        except NameError:
            pass  # Annotations that are not defined yet are checked on use.
        _register(cls)
        return cls

    if target is None:
        return decorate
    return decorate(target)


def export(type_: Any, factory: Callable[..., Any]) -> Callable[[C], C]:
    """Export ``type_`` from a module class, built by ``factory``.

    ``factory`` receives the module instance first; its other annotated
    parameters are requested from the provider.
    """
    if not callable(factory):
        raise TypeError(f"Export factory must be callable, got {factory!r}")
    params = _parameters(factory)
    if not params or params[0].kind is _ParameterKind.KEYWORD_ONLY:
        raise TypeError("Missing factory input: the first parameter receives the module.")
    entry = Export(type_, factory)

    def decorate(cls: C) -> C:
        _require_class(cls, "export")
        setattr(cls, _EXPORTS_ATTR, (entry, *vars(cls).get(_EXPORTS_ATTR, ())))
        if _MODULE_ATTR in vars(cls):
            _register(cls)
        return cls

    return decorate


def exports_of(cls: Any) -> list[Export]:
    """Everything a module exports: class exports first, then field exports.

    ``cls`` may be a parametrised generic module; its type variables are bound
    in the exported types.
    """
    origin = get_origin(cls)
    bindings: dict[Any, Any] = {}
    if origin is None:
        origin = cls
    else:
        bindings = dict(zip(getattr(origin, "__parameters__", ()), get_args(cls)))
    if not isinstance(origin, type) or _MODULE_ATTR not in vars(origin):
        raise TypeError(f"{cls!r} is not a module")
    own = [
        replace(entry, type_=_substitute(entry.type_, bindings))
        for entry in vars(origin).get(_EXPORTS_ATTR, ())
    ]
    return [*own, *_field_exports(origin, bindings)]