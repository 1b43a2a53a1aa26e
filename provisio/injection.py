"""Mark classes as injectable and build them from a provider.

A provider is any object with a ``provide(type_)`` method that returns a
value for the requested type. An injectable class is built by asking the
provider for each constructor parameter, using the parameter's annotation
as the requested type. A parameter annotated with
``Annotated[T, Inject(factory)]`` is built by ``factory`` instead. A class
decorated with :func:`inject` is always built by its factory.

Factory parameters are resolved the same way: each one must carry a type
annotation, which is requested from the provider. Annotations must be type
objects; string annotations cannot be resolved.
"""

from __future__ import annotations

import functools
import types
from dataclasses import dataclass
from enum import Enum, auto
from typing import Annotated, Any, Callable, TypeVar, get_args, get_origin

__all__ = [
    "Inject",
    "ResolutionError",
    "injectable",
    "inject",
    "is_injectable",
    "factory_inputs",
    "inject_into",
]

_FACTORY_ATTR = "__provisio_factory__"
_INJECTABLE_ATTR = "__provisio_injectable__"

T = TypeVar("T")


class ResolutionError(LookupError):
    """Raised when a value cannot be built for a requested type."""


class _ParameterKind(Enum):
    POSITIONAL_ONLY = auto()
    POSITIONAL_OR_KEYWORD = auto()
    KEYWORD_ONLY = auto()


class _Missing:
    """Marker for a parameter without annotation."""

    def __repr__(self) -> str:
        return "<missing>"


_MISSING = _Missing()


@dataclass(frozen=True)
class _Parameter:
    name: str
    kind: _ParameterKind
    annotation: Any = _MISSING
    has_default: bool = False


@dataclass(frozen=True)
class Inject:
    """Parameter marker: build the value with ``factory`` instead of the provider.

    The factory's own annotated parameters are requested from the provider.
    """

    factory: Callable[..., Any]

    def __post_init__(self) -> None:
        if not callable(self.factory):
            raise TypeError(f"Inject factory must be callable, got {self.factory!r}")
        _check_declared(self.factory)


def _type_name(type_: Any) -> str:
    return getattr(type_, "__qualname__", None) or repr(type_)


def _underlying_function(target: Any) -> tuple[types.FunctionType | None, bool]:
    """The Python function behind ``target`` and whether its first input is bound."""
    if isinstance(target, type):
        init = target.__init__
        if init is object.__init__:
            return None, False
        if isinstance(init, types.FunctionType):
            return init, True
        raise TypeError(f"Unable to inspect {_type_name(target)}: unsupported constructor")
    if isinstance(target, types.MethodType) and isinstance(
        target.__func__, types.FunctionType
    ):
        return target.__func__, True
    if isinstance(target, types.FunctionType):
        return target, False
    call = getattr(type(target), "__call__", None)
    if isinstance(call, types.FunctionType):
        return call, True
    raise TypeError(f"Unable to inspect {_type_name(target)}: unsupported callable")


def _resolve_annotation(annotation: Any, func: types.FunctionType) -> Any:
    if isinstance(annotation, str):
        raise NameError(
            f"string annotation {annotation!r} of {func.__qualname__} cannot be resolved"
        )
    return annotation


def _function_parameters(func: types.FunctionType, evaluate: bool) -> list[_Parameter]:
    while isinstance(getattr(func, "__wrapped__", None), types.FunctionType):
        func = func.__wrapped__
    code = func.__code__
    positional_names = code.co_varnames[: code.co_argcount]
    keyword_names = code.co_varnames[
        code.co_argcount : code.co_argcount + code.co_kwonlyargcount
    ]
    first_default = code.co_argcount - len(func.__defaults__ or ())
    keyword_defaults = func.__kwdefaults__ or {}
    annotations = getattr(func, "__annotations__", None) or {}

    def annotation_of(name: str) -> Any:
        if name not in annotations:
            return _MISSING
        raw = annotations[name]
        return _resolve_annotation(raw, func) if evaluate else raw

    params = [
        _Parameter(
            name,
            _ParameterKind.POSITIONAL_ONLY
            if position < code.co_posonlyargcount
            else _ParameterKind.POSITIONAL_OR_KEYWORD,
            annotation_of(name),
            position >= first_default,
        )
        for position, name in enumerate(positional_names)
    ]
    params.extend(
        _Parameter(
            name,
            _ParameterKind.KEYWORD_ONLY,
            annotation_of(name),
            name in keyword_defaults,
        )
        for name in keyword_names
    )
    return params


def _describe_parameters(target: Any, *, evaluate: bool) -> list[_Parameter]:
    """Non-variadic parameters of ``target``; raises ``NameError`` or ``TypeError``."""
    if isinstance(target, functools.partial):
        params = _describe_parameters(target.func, evaluate=evaluate)
        positional = [p for p in params if p.kind is not _ParameterKind.KEYWORD_ONLY]
        if len(target.args) > len(positional):
            raise TypeError(f"Unable to inspect {target!r}: too many bound arguments")
        consumed = {p.name for p in positional[: len(target.args)]} | set(target.keywords)
        return [p for p in params if p.name not in consumed]
    func, bound_first = _underlying_function(target)
    if func is None:
        return []
    params = _function_parameters(func, evaluate)
    return params[1:] if bound_first else params


def _checked_parameters(target: Any, *, evaluate: bool) -> list[_Parameter]:
    try:
        return _describe_parameters(target, evaluate=evaluate)
    except NameError as error:
        raise ResolutionError(
            f"Unable to resolve annotations of {_type_name(target)}: {error}"
        ) from error


def _injection_points(params: list[_Parameter]) -> list[_Parameter]:
    """Parameters that receive injected values, validating the others."""
    points = []
    for param in params:
        if param.annotation is _MISSING:
            if not param.has_default:
                raise TypeError(f"Invalid input: {param.name} has no type annotation")
            continue
        points.append(param)
    return points


def _check_declared(target: Callable[..., Any]) -> None:
    _injection_points(_checked_parameters(target, evaluate=False))


def factory_inputs(factory: Callable[..., Any]) -> list[tuple[str, Any]]:
    """Return ``(name, type)`` for every parameter the factory needs injected.

    Parameters with a default and no annotation are left to their default.
    Raises ``TypeError`` for a parameter without annotation or default.
    """
    points = _injection_points(_checked_parameters(factory, evaluate=True))
    return [(param.name, param.annotation) for param in points]


def _substitute(hint: Any, bindings: dict[Any, Any]) -> Any:
    if not bindings:
        return hint
    if isinstance(hint, TypeVar):
        return bindings.get(hint, hint)
    params = getattr(hint, "__parameters__", ())
    if params and get_origin(hint) is not None:
        return hint[tuple(bindings.get(p, p) for p in params)]
    return hint


def _resolve(hint: Any, provider: Any, bindings: dict[Any, Any]) -> Any:
    if get_origin(hint) is Annotated:
        base, *metadata = get_args(hint)
        markers = [m for m in metadata if isinstance(m, Inject)]
        if markers:
            return _invoke(markers[-1].factory, provider, bindings)
        hint = base
    return provider.provide(_substitute(hint, bindings))


def _invoke(
    target: Callable[..., Any], provider: Any, bindings: dict[Any, Any]
) -> Any:
    args = []
    kwargs = {}
    for param in _injection_points(_checked_parameters(target, evaluate=True)):
        try:
            value = _resolve(param.annotation, provider, bindings)
        except ResolutionError as error:
            raise ResolutionError(
                f"Unable to inject '{param.name}' of {_type_name(target)}"
            ) from error
        if param.kind is _ParameterKind.POSITIONAL_ONLY:
            args.append(value)
        else:
            kwargs[param.name] = value
    return target(*args, **kwargs)


def _require_class(target: Any, decorator: str) -> None:
    if not isinstance(target, type):
        raise TypeError(f"@{decorator} must be used on a class, got {target!r}")


def injectable(cls: type[T]) -> type[T]:
    """Mark ``cls`` as built by injecting every constructor parameter."""
    _require_class(cls, "injectable")
    _check_declared(cls)
    setattr(cls, _INJECTABLE_ATTR, True)
    return cls


def inject(factory: Callable[..., Any]) -> Callable[[type[T]], type[T]]:
    """Mark a class as built by ``factory``, whose inputs are injected."""
    if not callable(factory):
        raise TypeError(f"Inject factory must be callable, got {factory!r}")
    _check_declared(factory)

    def decorate(cls: type[T]) -> type[T]:
        _require_class(cls, "inject")
        setattr(cls, _FACTORY_ATTR, factory)
        return cls

    return decorate


def _split_generic(cls: Any) -> tuple[Any, dict[Any, Any]]:
    origin = get_origin(cls)
    if origin is None:
        return cls, {}
    params = getattr(origin, "__parameters__", ())
    return origin, dict(zip(params, get_args(cls)))


def is_injectable(cls: Any) -> bool:
    """Whether ``cls`` (or the generic class it parametrises) can be injected."""
    origin, _ = _split_generic(cls)
    if not isinstance(origin, type):
        return False
    own = vars(origin)
    return bool(own.get(_INJECTABLE_ATTR)) or _FACTORY_ATTR in own


def inject_into(cls: Any, provider: Any) -> Any:
    """Build an instance of ``cls`` with values requested from ``provider``.

    ``cls`` may be a parametrised generic such as ``Box[int]``; its type
    variables are bound before parameters are requested.
    """
    origin, bindings = _split_generic(cls)
    if not isinstance(origin, type):
        raise ResolutionError(f"{_type_name(cls)} is not injectable")
    own = vars(origin)
    factory = own.get(_FACTORY_ATTR)
    if factory is not None:
        return _invoke(factory, provider, bindings)
    if not own.get(_INJECTABLE_ATTR):
        raise ResolutionError(f"{_type_name(cls)} is not injectable")
    return _invoke(origin, provider, bindings)