from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar, cast

from ._errors import ContainerError, NotFoundError, describe
from ._reflection import ImportReflector, ParameterSpec, TypeKind, identifier_of, is_interface


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ._reflection import Reflector

    T = TypeVar("T")

    Definitions = Mapping[Any, object] | Iterable[tuple[Any, object]]


_UNRESOLVED = object()


@dataclass
class Entry:
    definition: object
    result: object = _UNRESOLVED  # single-assignment slot

    @property
    def resolved(self) -> bool:
        return self.result is not _UNRESOLVED


class Container:
    """Dependency container built from a mapping of identifiers to definitions.

    - plain values are returned verbatim
    - callables are factories invoked with the container
    - strings bound to interface-like identifiers are aliases
    - unregistered class identifiers are autowired from constructor type hints

    Every resolved value is cached for the lifetime of the container.
    """

    def __init__(
        self,
        definitions: Definitions = (),
        *,
        reflector: Reflector | None = None,
        autowire: bool = True,
    ) -> None:
        self._entries: dict[str, Entry] = {}
        self._autowired: dict[str, object] = {}
        self._resolving: list[str] = []
        self._reflector: Reflector = reflector if reflector is not None else ImportReflector()
        self._autowire = autowire
        self._lock = threading.RLock()

        for key, definition in _iter_definitions(definitions):
            self._entries[_to_identifier(key)] = Entry(definition)

    @classmethod
    def factories(cls, factories: Definitions, **options: Any) -> Container:
        """Build a container whose definitions must all be factories.

        Example:
          Container.factories({"db": lambda c: connect(c.get("db.url"))})

        """
        items = list(_iter_definitions(factories))
        for key, factory in items:
            if not callable(factory) or inspect.isclass(factory):
                msg = f"The '{key}' container entry is associated to {describe(factory)}, callable expected"
                raise TypeError(msg)

        return cls(items, **options)

    def with_entry(self, identifier: Any, definition: object) -> Container:
        """Return a new container where `identifier` is bound to `definition`."""
        return self.with_entries([(identifier, definition)])

    def with_entries(self, definitions: Definitions) -> Container:
        """Return a new container overlaying `definitions` on this one's.

        Cached results are not shared: factories of the new container receive the
        new container. This container is left untouched.
        """
        current = [(identifier, entry.definition) for identifier, entry in self._entries.items()]
        return type(self)(
            [*current, *_iter_definitions(definitions)],
            reflector=self._reflector,
            autowire=self._autowire,
        )

    def has(self, identifier: str) -> bool:
        """Tell whether `get(identifier)` can find something to resolve.

        True for explicit definitions and, when autowiring is enabled, for
        identifiers naming a concrete class. `get` may still fail on such a class
        (private constructor, unsatisfiable parameters) with a ContainerError,
        never with a NotFoundError.

        Raises ContainerError when importing the identifier's module fails.
        """
        _check_identifier(identifier)

        if identifier in self._entries:
            return True

        if not self._autowire:
            return False

        cls = self._locate(identifier)
        return cls is not None and not is_interface(cls)

    def get(self, identifier: str) -> Any:
        """Resolve the identifier, caching the result.

        Resolution precedence:
        1. cached result
        2. explicit definition: factory, alias or plain value
        3. autowiring of the class named by the identifier
        4. NotFoundError.
        """
        _check_identifier(identifier)

        with self._lock:
            entry = self._entries.get(identifier)

            if entry is not None and entry.resolved:
                return entry.result

            if identifier in self._autowired:
                return self._autowired[identifier]

            if identifier in self._resolving:
                cycle = [*self._resolving[self._resolving.index(identifier) :], identifier]
                msg = f"Circular dependency detected: {' -> '.join(cycle)}"
                raise ContainerError(msg, identifier=identifier)

            self._resolving.append(identifier)
            try:
                if entry is not None:
                    entry.result = self._resolve_definition(identifier, entry.definition)
                    return entry.result

                instance = self._construct(identifier)
                self._autowired[identifier] = instance
                return instance
            finally:
                self._resolving.pop()

    def resolve(self, cls: type[T]) -> T:
        """Typed shortcut for `get(identifier_of(cls))`."""
        return cast("T", self.get(identifier_of(cls)))

    def _resolve_definition(self, identifier: str, definition: object) -> object:
        if callable(definition) and not inspect.isclass(definition):
            logger.debug("Invoking factory for '%s'", identifier)
            try:
                return _invoke_factory(definition, self)
            except Exception as e:
                msg = f"Cannot get '{identifier}' from the container: factory has thrown an uncaught exception"
                raise ContainerError(msg, identifier=identifier) from e

        target = self._alias_target(identifier, definition)
        if target is not None:
            logger.debug("Resolving '%s' through alias '%s'", identifier, target)
            try:
                return self.get(target)
            except Exception as e:
                msg = (
                    f"Cannot get '{identifier}' from the container: "
                    f"getting '{target}' value has thrown an uncaught exception"
                )
                raise ContainerError(msg, identifier=identifier, dependency=target) from e

        return definition

    def _alias_target(self, identifier: str, definition: object) -> str | None:
        if not isinstance(definition, str) and not inspect.isclass(definition):
            return None

        cls = self._locate(identifier)
        if cls is None or not is_interface(cls):
            return None

        return definition if isinstance(definition, str) else identifier_of(cast("type", definition))

    def _construct(self, identifier: str) -> object:
        if not self._autowire:
            raise NotFoundError(identifier)

        cls = self._locate(identifier)
        if cls is None or is_interface(cls):
            raise NotFoundError(identifier)

        if not self._reflector.has_public_constructor(cls):
            msg = f"Container cannot instantiate class with protected/private constructor {identifier}"
            raise ContainerError(msg, identifier=identifier)

        try:
            parameters = self._reflector.parameters(cls)
        except Exception as e:
            msg = (
                f"Container cannot instantiate {identifier}: "
                "inspecting the constructor has thrown an uncaught exception"
            )
            raise ContainerError(msg, identifier=identifier) from e

        logger.debug("Autowiring '%s' (%d constructor parameters)", identifier, len(parameters))

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for parameter in parameters:
            value = self._resolve_parameter(identifier, parameter)
            if parameter.positional_only:
                args.append(value)
            else:
                kwargs[parameter.name] = value

        try:
            return cls(*args, **kwargs)
        except Exception as e:
            msg = f"Container cannot instantiate {identifier}: constructor has thrown an uncaught exception"
            raise ContainerError(msg, identifier=identifier) from e

    def _resolve_parameter(self, identifier: str, parameter: ParameterSpec) -> Any:
        """Resolving param.

        Resolution precedence:
        1. union type: error
        2. class type: recursion guard, then the container
        3. default
        4. None when nullable
        5. error.
        """
        if parameter.kind in (TypeKind.UNION, TypeKind.INTERSECTION):
            msg = (
                f"Container cannot instantiate {identifier}: "
                f"parameter '{parameter.name}' has {parameter.kind.value} type"
            )
            raise ContainerError(msg, identifier=identifier, parameter=parameter.name)

        if parameter.kind is TypeKind.NAMED:
            return self._resolve_dependency(identifier, parameter)

        if parameter.has_default:
            return parameter.default

        if parameter.nullable:
            return None

        if parameter.kind is TypeKind.ABSENT:
            msg = f"Container cannot instantiate {identifier}: parameter '{parameter.name}' has no type"
        elif parameter.kind is TypeKind.UNDEFINED:
            msg = (
                f"Container cannot instantiate {identifier}: "
                f"parameter '{parameter.name}' type {parameter.type_name} does not exist"
            )
        else:
            msg = f"Container cannot instantiate {identifier}: parameter '{parameter.name}' type is not a class name"
        raise ContainerError(msg, identifier=identifier, parameter=parameter.name)

    def _resolve_dependency(self, identifier: str, parameter: ParameterSpec) -> Any:
        dependency = parameter.type_name

        if dependency == identifier:
            msg = (
                f"Container cannot instantiate {identifier}: parameter '{parameter.name}' value has the same type, "
                "this would trigger infinite recursion"
            )
            raise ContainerError(msg, identifier=identifier, parameter=parameter.name, dependency=dependency)

        try:
            return self.get(dependency)
        except NotFoundError as e:
            if parameter.has_default:
                return parameter.default
            if parameter.nullable:
                return None

            msg = (
                f"Container cannot instantiate {identifier}: parameter '{parameter.name}' type {dependency} "
                "cannot be instantiated and should be defined in the container"
            )
            raise ContainerError(msg, identifier=identifier, parameter=parameter.name, dependency=dependency) from e
        except Exception as e:
            msg = (
                f"Container cannot instantiate {identifier}: getting parameter '{parameter.name}' value "
                f"has thrown an uncaught exception (type: {dependency})"
            )
            raise ContainerError(msg, identifier=identifier, parameter=parameter.name, dependency=dependency) from e

    def _locate(self, identifier: str) -> type | None:
        try:
            return self._reflector.locate(identifier)
        except Exception as e:
            msg = f"Cannot get '{identifier}' from the container: locating the type has thrown an uncaught exception"
            raise ContainerError(msg, identifier=identifier) from e


def _check_identifier(identifier: object) -> None:
    if not isinstance(identifier, str):
        msg = f"Container entry identifier must be of the type str, {type(identifier).__name__} given"
        raise TypeError(msg)


def _to_identifier(key: object) -> str:
    if isinstance(key, str):
        return key

    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)

    if inspect.isclass(key):
        return identifier_of(key)

    msg = f"Argument 1 passed to Container() must have str, int or class keys, {type(key).__name__} given"
    raise TypeError(msg)


def _iter_definitions(definitions: Definitions) -> Iterable[tuple[Any, object]]:
    if isinstance(definitions, Mapping):
        yield from definitions.items()
        return

    for item in definitions:
        if not isinstance(item, tuple) or len(item) != 2:  # noqa: PLR2004
            msg = (
                "Argument 1 passed to Container() must be a mapping or pairs of (key, definition), "
                f"{describe(item)} given"
            )
            raise TypeError(msg)
        yield item


def _invoke_factory(factory: Callable[..., object], container: Container) -> object:
    try:
        sig = inspect.signature(factory)
    except (TypeError, ValueError):
        # no introspectable signature (some builtins): assume it takes the container
        return factory(container)

    takes_container = any(
        p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD, p.VAR_POSITIONAL) for p in sig.parameters.values()
    )
    return factory(container) if takes_container else factory()
