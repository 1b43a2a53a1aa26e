# provisio

Declarative dependency injection for Python.

Classes declare how they are built, providers declare what they hold, and
a provider assembles object graphs on request through its
`provide(type_)` method. Providers can import modules, which hand out only
the types they export, and open scopes, which are providers layered on top
of a root provider.

## Installation

```
pip install provisio
```

The package has no runtime dependencies. The test suite needs the `test`
extra:

```
pip install "provisio[test]"
pytest
```

## A short example

```python
from typing import Annotated

from provisio.injection import Inject, inject, injectable
from provisio.providers import Provide, provider, provides, scope


@inject(lambda: Config(42))
class Config:
    def __init__(self, value: int):
        self.value = value


@injectable
class Service:
    def __init__(self, config: Config, name: Annotated[str, Inject(lambda: "svc")]):
        self.config = config
        self.name = name


@injectable
class Session:
    def __init__(self, service: Service):
        self.service = service


@provider
@provides(int, lambda self: 7)
@scope(Session)
class App:
    pass


app = App()
app.provide(int)                  # 7
app.provide(Service).config.value  # 42
session_scope = app.scope()
session_scope.provide(Session) is session_scope[0]  # True
```

Types are read from the annotations of constructor and factory
parameters, so annotations must be real type objects: a module using
`from __future__ import annotations` (string annotations) cannot be
injected.

## Injectables — `provisio.injection`

- `injectable(cls)` marks a class that is built by requesting every
  annotated constructor parameter from the provider. A parameter written
  as `Annotated[T, Inject(factory)]` is built by calling `factory`
  instead; the factory's own annotated parameters are requested from the
  provider. Parameters without an annotation must have a default, which
  is then used.
- `inject(factory)` gives a class a single factory; its annotated
  parameters are requested from the provider.
- `is_injectable(cls)` tells whether a class (or the generic class behind
  a parametrised alias such as `Box[int]`) can be built.
- `factory_inputs(factory)` returns the `(name, type)` pairs a factory
  needs injected.
- `inject_into(cls, provider)` builds an instance of `cls` with values
  from `provider`. Type variables of a parametrised generic are bound
  before parameters are requested.
- `ResolutionError` (a `LookupError`) is raised when a type cannot be
  built.

## Providers — `provisio.providers`

`provider(cls)` adds a `provide(type_)` method. A request is answered, in
this order, by:

1. factories declared with `provides(type_, factory)`; the factory
   receives the provider instance first and its other annotated
   parameters are provided;
2. constructor parameters annotated `Annotated[T, Provide(...)]`, which
   hand out the stored attribute. `Provide(type_)` makes it answer to
   another type (an abstract base class, say), and `Provide(type_,
   factory)` passes the stored value through a one-argument factory;
3. constructor parameters annotated `Annotated[M, Import()]`, which hand
   out what the stored module `M` exports;
4. injection of the requested type, with the provider supplying its
   inputs.

The constructor must store each marked parameter under an attribute of
the same name.

`scope(type_, *, name=None, arg=False, provide=None, import_=False)`
declares a value held by a scope. The decorated class gains `scope()`, or
`<name>_scope()` for a named scope, which returns a new provider holding
the scoped values (readable by index) and falling back to the root for
everything else. Values marked `arg` are passed to the opening method in
declaration order; the others are provided by the root. `provide` sets the
type a scoped value answers to (a type or a `Provide`), and `import_`
makes the scope hand out what the value exports. `ScopeField` describes
one such value.

`snake_to_pascal(snake)` and `group_by(items, key)` are the small helpers
used to name scope classes and to group scope fields.

## Modules — `provisio.modules`

- `module(cls)` or `module(path="pkg.Self")` declares a module. `Self` in
  the dotted path stands for the class name; without a path the class
  name is used.
- A constructor parameter annotated `Annotated[T, Export(...)]` exports
  the stored attribute, optionally under another type or through a
  one-argument factory.
- `export(type_, factory)` exports a type from the class itself; the
  factory receives the module instance first and its other annotated
  parameters are provided.
- `exports_of(cls)` lists a module's exports, class exports first.

## Module registry — `provisio.registry`

Declaring a module records its public path and class-level exported types
with a `ModuleRegistry`. Each `ModuleRecord` is stored as a small text
file in the directory returned by `cache_path()`: the `PROVISIO_OUT_DIR`
environment variable, or `./target/.provisio` by default. A record that
exports nothing has its file removed. File names come from
`to_file_name(key)`: base32 for short keys, and for keys longer than 40
bytes the first 32 bytes plus a hash, base64 encoded with `/` replaced by
`_`. `retry(times, action)` retries file operations 100 ms apart.

Note that decorating a class with `module` therefore writes to that
directory; point `PROVISIO_OUT_DIR` elsewhere if the default is not
wanted.

## Utilities

- `provisio.encoding`: `base32_encode`, `base32_decode`, `base64_encode`,
  `base64_decode`. The base32 form is unpadded and upper case.
- `provisio.hashing`: `fnv(data)`, a 128-bit FNV hash (xor, then
  multiply) returned as 16 big-endian bytes.

```python
from provisio.encoding import base32_encode
from provisio.hashing import fnv

fnv(b"hello world").hex()         # 'c95984f170c495ba01ee83118e66933f'
base32_encode(b"lib1 :: Module")  # b'NRUWEMJAHI5CATLPMR2WYZI'
```

## What it does not do

The package is a library only: it has no command-line tool. Resolution
happens at run time on each `provide` call; nothing is checked or
generated ahead of time, and a missing type is reported only when it is
requested, as a `ResolutionError`.