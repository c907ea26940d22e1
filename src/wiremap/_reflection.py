from __future__ import annotations

import importlib
import inspect
import logging
import re
import sys
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, get_args, get_origin, get_type_hints


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class TypeKind(Enum):
    ABSENT = "absent"
    NAMED = "named"
    UNION = "union"
    INTERSECTION = "intersection"
    BUILTIN = "builtin"
    UNDEFINED = "undefined"


@dataclass(frozen=True)
class ParameterSpec:
    """What the container needs to know about one constructor parameter.

    - `type_name`: the dependency identifier for NAMED parameters, a display
      string otherwise.
    - `annotation`: the evaluated annotation with `None` stripped from optional
      unions, or None when there is nothing to evaluate.
    """

    name: str
    kind: TypeKind
    type_name: str
    annotation: Any = None
    has_default: bool = False
    default: Any = None
    nullable: bool = False
    positional_only: bool = False


class Reflector(Protocol):
    """Type-introspection capability consumed by the container.

    - `locate`: the class named by an identifier, or None.
    - `has_public_constructor`: False refuses autowiring with a ContainerError.
    - `parameters`: constructor parameters in declaration order, `self` and
      variadics excluded.
    """

    def locate(self, identifier: str) -> type | None: ...

    def has_public_constructor(self, cls: type) -> bool: ...

    def parameters(self, cls: type) -> list[ParameterSpec]: ...


def identifier_of(cls: type) -> str:
    """Return the container identifier naming `cls`."""
    return f"{cls.__module__}.{cls.__qualname__}"


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol class itself, not a concrete subclass."""
        return (
            inspect.isclass(tp)
            and Protocol in getattr(tp, "__mro__", ())
            and bool(getattr(tp, "_is_protocol", False))
        )


def is_interface(cls: type) -> bool:
    """Interface-like types are protocols and abstract classes: never instantiated."""
    return is_protocol(cls) or inspect.isabstract(cls)


class SignatureReflector:
    """Constructor introspection shared by the concrete reflectors.

    Subclasses decide how identifiers map to classes by implementing `locate`.
    """

    def locate(self, identifier: str) -> type | None:
        raise NotImplementedError

    def has_public_constructor(self, cls: type) -> bool:
        """A required keyword-only `_private` parameter reserves the constructor to named constructors."""
        init = inspect.unwrap(cls.__init__)
        code = getattr(init, "__code__", None)
        if code is None:
            return True

        kwonly = code.co_varnames[code.co_argcount : code.co_argcount + code.co_kwonlyargcount]
        kwdefaults = getattr(init, "__kwdefaults__", None) or {}
        return not any(
            name.startswith("_") and not name.startswith("__") and name not in kwdefaults for name in kwonly
        )

    def parameters(self, cls: type) -> list[ParameterSpec]:
        init = cls.__init__
        if init is object.__init__:
            return []

        # drop `self`; variadic parameters are never filled by the container
        params = [
            p
            for p in list(inspect.signature(init).parameters.values())[1:]
            if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]
        hints = _get_init_type_hints(cls, init, params)

        return [_describe_parameter(p, hints) for p in params]


class ImportReflector(SignatureReflector):
    """Locate classes by dotted path, importing modules on demand."""

    def locate(self, identifier: str) -> type | None:
        parts = identifier.split(".")
        if not all(part.isidentifier() for part in parts):
            return None

        for index in range(len(parts), 0, -1):
            module = _import_module(".".join(parts[:index]))
            if module is None:
                continue

            obj: Any = module
            for attr in parts[index:]:
                obj = getattr(obj, attr, None)
                if obj is None:
                    return None

            return obj if inspect.isclass(obj) else None

        return None


class RegistryReflector(SignatureReflector):
    """Locate only the classes given up front. Nothing is ever imported.

    Useful where importing by dotted path is not possible, e.g. for classes
    defined inside functions.
    """

    def __init__(self, classes: Iterable[type] = ()) -> None:
        self._types: dict[str, type] = {}
        for cls in classes:
            if not inspect.isclass(cls):
                msg = f"RegistryReflector expects classes, {type(cls).__name__} given"
                raise TypeError(msg)
            self._types[identifier_of(cls)] = cls

    def locate(self, identifier: str) -> type | None:
        return self._types.get(identifier)


def _import_module(name: str) -> types.ModuleType | None:
    module = sys.modules.get(name)
    if module is not None:
        return module

    try:
        return importlib.import_module(name)
    except ModuleNotFoundError as exc:
        # Only the module being looked up (or one of its parents) may be missing.
        # A broken import inside an existing module is a real error.
        if exc.name is None or name == exc.name or name.startswith(exc.name + "."):
            return None
        raise


@dataclass(frozen=True)
class _Undefined:
    expression: str


_NULLABLE_EXPRESSION = re.compile(r"\bNone\b|\bOptional\[")


def _get_init_type_hints(cls: type, init: Callable[..., Any], params: list[inspect.Parameter]) -> dict[str, Any]:
    try:
        return get_type_hints(init)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)

    # evaluate one annotation at a time so a single undefined name only affects its own parameter
    hints: dict[str, Any] = {}
    for p in params:
        if p.annotation is inspect.Parameter.empty:
            continue
        try:
            hints[p.name] = _evaluate_annotation(init, p.name, p.annotation)
        except (NameError, TypeError):
            hints[p.name] = _Undefined(str(p.annotation))

    return hints


def _evaluate_annotation(func: Callable[..., Any], name: str, annotation: object) -> Any:
    if not isinstance(annotation, str):
        return annotation

    def holder() -> None: ...

    holder.__annotations__ = {name: annotation}
    return get_type_hints(holder, globalns=getattr(func, "__globals__", None))[name]


def _describe_parameter(p: inspect.Parameter, hints: dict[str, Any]) -> ParameterSpec:
    has_default = p.default is not inspect.Parameter.empty
    common: dict[str, Any] = {
        "name": p.name,
        "has_default": has_default,
        "default": p.default if has_default else None,
        "positional_only": p.kind is inspect.Parameter.POSITIONAL_ONLY,
    }

    if p.name not in hints:
        return ParameterSpec(kind=TypeKind.ABSENT, type_name="no-annotation", **common)

    ann = hints[p.name]
    if isinstance(ann, _Undefined):
        return ParameterSpec(
            kind=TypeKind.UNDEFINED,
            type_name=ann.expression,
            nullable=bool(_NULLABLE_EXPRESSION.search(ann.expression)),
            **common,
        )

    nullable = False
    if _is_union(ann):
        members = [arg for arg in get_args(ann) if arg is not type(None)]
        nullable = len(members) < len(get_args(ann))
        if len(members) > 1:
            return ParameterSpec(
                kind=TypeKind.UNION,
                type_name=" | ".join(_type_repr(m) for m in members),
                annotation=ann,
                nullable=nullable,
                **common,
            )
        ann = members[0]

    if ann is None or ann is type(None):
        return ParameterSpec(kind=TypeKind.BUILTIN, type_name="None", nullable=True, **common)

    if _is_class_name(ann):
        return ParameterSpec(
            kind=TypeKind.NAMED,
            type_name=identifier_of(ann),
            annotation=ann,
            nullable=nullable,
            **common,
        )

    return ParameterSpec(
        kind=TypeKind.BUILTIN,
        type_name=_type_repr(ann),
        annotation=ann,
        nullable=nullable,
        **common,
    )


def _is_union(ann: object) -> bool:
    origin = get_origin(ann)
    return origin is Union or origin is types.UnionType


def _is_class_name(ann: object) -> bool:
    return (
        inspect.isclass(ann)
        and get_origin(ann) is None
        and ann is not Any
        and getattr(ann, "__module__", "") not in ("builtins", "typing")
    )


def _type_repr(ann: object) -> str:
    return getattr(ann, "__name__", repr(ann))
