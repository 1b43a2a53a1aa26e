"""Providers: classes that hand out values for requested types.

A class decorated with :func:`provider` gains a ``provide(type_)`` method.
A request is answered, in order, by:

1. factories declared on the class with :func:`provides`;
2. constructor parameters annotated ``Annotated[T, Provide(...)]``, which
   hand out the stored attribute;
3. constructor parameters annotated ``Annotated[M, Import()]``, which hand
   out what module ``M`` exports;
4. injection of the requested type, with the provider supplying its inputs.

:func:`scope` declares values that live in a scope opened from a provider
instance. ``Root().scope()`` (or ``Root().<name>_scope()`` for a named scope)
returns a provider that holds the scoped values and falls back to the root.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    Callable,
    Iterable,
    TypeVar,
    get_args,
    get_origin,
)

from .injection import (
    ResolutionError,
    _checked_parameters,
    _ParameterKind,
    factory_inputs,
    inject_into,
)
from .modules import exports_of

__all__ = [
    "Provide",
    "Import",
    "ScopeField",
    "provider",
    "provides",
    "scope",
    "snake_to_pascal",
    "group_by",
]

_PROVIDES_ATTR = "__provisio_provides__"
_SCOPES_ATTR = "__provisio_scopes__"
_MISSING = object()

C = TypeVar("C", bound=type)
T = TypeVar("T")
K = TypeVar("K")


@dataclass(frozen=True)
class Provide:
    """Field marker: hand out the stored value.

    ``type_`` overrides the type it answers to; ``factory`` maps the stored
    value to the value handed out.
    """

    type_: Any = None
    factory: Callable[[Any], Any] | None = None

    def __post_init__(self) -> None:
        if self.factory is not None and not callable(self.factory):
            raise TypeError(f"Provide factory must be callable, got {self.factory!r}")

    def value_of(self, stored: Any) -> Any:
        return stored if self.factory is None else self.factory(stored)


@dataclass(frozen=True)
class Import:
    """Field marker: hand out what the stored module exports."""


@dataclass(frozen=True)
class ScopeField:
    """A value held by a scope."""

    type_: Any
    name: str | None = None
    arg: bool = False
    provide: Provide | None = None
    import_: bool = False

    @property
    def provided_type(self) -> Any:
        if self.provide is not None and self.provide.type_ is not None:
            return self.provide.type_
        return self.type_


@dataclass(frozen=True)
class _Provision:
    type_: Any
    factory: Callable[..., Any]


def snake_to_pascal(snake: str) -> str:
    """Convert ``snake_case`` to ``PascalCase``."""
    return "".join(word[:1].upper() + word[1:] for word in snake.split("_"))


def group_by(items: Iterable[T], key: Callable[[T], K]) -> dict[K, list[T]]:
    """Group ``items`` by ``key``, keeping first-seen key order."""
    groups: dict[Any, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def _require_class(target: Any, decorator: str) -> None:
    if not isinstance(target, type):
        raise TypeError(f"@{decorator} must be used on a class, got {target!r}")


def _call_with_inputs(factory: Callable[..., Any], owner: Any, provider: Any) -> Any:
    bound = functools.partial(factory, owner)
    positional_only = {
        p.name
        for p in _checked_parameters(bound, evaluate=False)
        if p.kind is _ParameterKind.POSITIONAL_ONLY
    }
    args = []
    kwargs = {}
    for name, hint in factory_inputs(bound):
        if get_origin(hint) is Annotated:
            hint = get_args(hint)[0]
        value = provider.provide(hint)
        if name in positional_only:
            args.append(value)
        else:
            kwargs[name] = value
    return bound(*args, **kwargs)


def _field_markers(cls: type) -> list[tuple[str, Any, Any]]:
    try:
        params = _checked_parameters(cls, evaluate=True)
    except TypeError:
        return []
    found = []
    for param in params:
        if get_origin(param.annotation) is not Annotated:
            continue
        base, *metadata = get_args(param.annotation)
        for marker in metadata:
            if isinstance(marker, (Provide, Import)):
                found.append((param.name, base, marker))
    return found


def _explicit(cls: type, owner: Any, type_: Any, provider: Any) -> Any:
    """Value from the declared provisions of ``cls``, or ``_MISSING``."""
    for entry in vars(cls).get(_PROVIDES_ATTR, ()):
        if entry.type_ == type_:
            return _call_with_inputs(entry.factory, owner, provider)
    for name, base, marker in _field_markers(cls):
        if isinstance(marker, Provide):
            answers = base if marker.type_ is None else marker.type_
            if answers == type_:
                return marker.value_of(getattr(owner, name))
        else:
            for entry in exports_of(base):
                if entry.type_ == type_:
                    return entry.produce(getattr(owner, name), provider)
    return _MISSING


def provider(cls: C) -> C:
    """Give ``cls`` a ``provide(type_)`` method."""
    _require_class(cls, "provider")

    def provide(self: Any, type_: Any) -> Any:
        """A value for ``type_``; raises ResolutionError if none can be made."""
        value = _explicit(cls, self, type_, self)
        if value is not _MISSING:
            return value
        return inject_into(type_, self)

    cls.provide = provide  # type: ignore[attr-defined]
    return cls


def provides(type_: Any, factory: Callable[..., Any]) -> Callable[[C], C]:
    """Declare that a provider answers ``type_`` with ``factory``.

    ``factory`` receives the provider instance first; its other annotated
    parameters are requested from the provider.
    """
    if not callable(factory):
        raise TypeError(f"Provide factory must be callable, got {factory!r}")
    params = _checked_parameters(factory, evaluate=False)
    if not params or params[0].kind is _ParameterKind.KEYWORD_ONLY:
        raise TypeError("Missing factory input: the first parameter receives the provider.")
    entry = _Provision(type_, factory)

    def decorate(cls: C) -> C:
        _require_class(cls, "provides")
        setattr(cls, _PROVIDES_ATTR, (entry, *vars(cls).get(_PROVIDES_ATTR, ())))
        return cls

    return decorate


class _Scope:
    """A provider holding scoped values and falling back to its root."""

    _fields: tuple[ScopeField, ...] = ()
    _root_cls: type = object

    def __init__(self, values: Iterable[Any], root: Any) -> None:
        self.values = tuple(values)
        self.root = root

    def __getitem__(self, index: int) -> Any:
        return self.values[index]

    def provide(self, type_: Any) -> Any:
        """A value for ``type_``; raises ResolutionError if none can be made."""
        for field, value in zip(self._fields, self.values):
            if field.import_:
                for entry in exports_of(field.type_):
                    if entry.type_ == type_:
                        return entry.produce(value, self)
            if field.provided_type == type_:
                return value if field.provide is None else field.provide.value_of(value)
        value = _explicit(self._root_cls, self.root, type_, self)
        if value is not _MISSING:
            return value
        return inject_into(type_, self)


def _install_scopes(cls: type) -> None:
    for name, fields in group_by(vars(cls)[_SCOPES_ATTR], lambda f: f.name).items():
        suffix = snake_to_pascal(name) if name else ""
        scope_cls = type(
            f"{cls.__name__}{suffix}Scope",
            (_Scope,),
            {"_fields": tuple(fields), "_root_cls": cls, "__module__": cls.__module__},
        )
        method_name = f"{name}_scope" if name else "scope"
        setattr(cls, method_name, _scope_opener(method_name, scope_cls, tuple(fields)))


def _scope_opener(
    method_name: str, scope_cls: type, fields: tuple[ScopeField, ...]
) -> Callable[..., Any]:
    arity = sum(1 for f in fields if f.arg)

    def open_scope(self: Any, *args: Any) -> Any:
        if len(args) != arity:
            raise TypeError(f"{method_name}() takes {arity} arguments, got {len(args)}")
        supplied = iter(args)
        values = [next(supplied) if f.arg else self.provide(f.type_) for f in fields]
        return scope_cls(values, self)

    open_scope.__name__ = method_name
    return open_scope


def scope(
    type_: Any,
    *,
    name: str | None = None,
    arg: bool = False,
    provide: Provide | Any = None,
    import_: bool = False,
) -> Callable[[C], C]:
    """Declare a value held by a scope of the decorated provider.

    Values marked ``arg`` are passed when opening the scope; the others are
    provided by the root. ``provide`` sets the type the value answers to,
    and ``import_`` makes the scope hand out what the value exports.
    """
    if name is not None and not name.isidentifier():
        raise ValueError(f"Invalid scope name: {name!r}")
    if provide is not None and not isinstance(provide, Provide):
        provide = Provide(provide)
    field = ScopeField(type_, name, arg, provide, import_)

    def decorate(cls: C) -> C:
        _require_class(cls, "scope")
        setattr(cls, _SCOPES_ATTR, (field, *vars(cls).get(_SCOPES_ATTR, ())))
        _install_scopes(cls)
        return cls

    return decorate