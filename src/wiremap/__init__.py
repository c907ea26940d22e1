"""Minimal dependency resolution container.

This package provides a container built once from a mapping of identifiers to
definitions (plain values, factories taking the container, or interface aliases),
resolving each identifier at most once and caching the result. Unregistered class
identifiers are autowired from constructor type hints.

Exports:
- `Container`: the container, with `has`, `get` and copy-producing `with_entries`.
- `ContainerError`: raised when a definition exists but cannot produce a value.
- `NotFoundError`: raised when nothing is defined for an identifier.
- `ImportReflector` / `RegistryReflector`: locate classes by dotted path, by import
  or from an explicit list of classes.
- `identifier_of`: the identifier naming a class.
"""

from ._container import Container
from ._errors import ContainerError, NotFoundError
from ._reflection import (
    ImportReflector,
    ParameterSpec,
    Reflector,
    RegistryReflector,
    TypeKind,
    identifier_of,
)


__all__ = [
    "Container",
    "ContainerError",
    "ImportReflector",
    "NotFoundError",
    "ParameterSpec",
    "Reflector",
    "RegistryReflector",
    "TypeKind",
    "identifier_of",
]
