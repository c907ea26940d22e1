import logging
from typing import Optional, Protocol

import pytest

from tests.classes import (
    AliasInterface,
    AutowiredClass,
    DepDefinedAbstract,
    DepDefinedClass,
    NonExistingDefaultParameter,
    OptionalUnderscoreParameters,
    PositionalOnly,
    PrivateConstructor,
    UnionParameter,
)
from wiremap import ImportReflector, RegistryReflector, TypeKind, identifier_of
from wiremap._reflection import is_interface


def test_identifier_of_uses_module_and_qualname():
    assert identifier_of(DepDefinedClass) == "tests.classes.DepDefinedClass"


class TestImportReflector:
    def test_locate_imports_class_by_dotted_path(self):
        assert ImportReflector().locate("tests.classes.DepDefinedClass") is DepDefinedClass

    def test_locate_returns_none_for_missing_module(self):
        assert ImportReflector().locate("no_such_package.Thing") is None

    def test_locate_returns_none_for_modules_and_non_classes(self):
        reflector = ImportReflector()

        assert reflector.locate("tests.classes") is None
        assert reflector.locate("logging.getLogger") is None

    def test_locate_rejects_non_identifier_segments(self):
        assert ImportReflector().locate("simple.null value") is None
        assert ImportReflector().locate("tests.classes.<locals>.Thing") is None

    def test_public_constructor_detection(self):
        reflector = ImportReflector()

        assert reflector.has_public_constructor(DepDefinedClass)
        assert reflector.has_public_constructor(AutowiredClass)
        assert reflector.has_public_constructor(OptionalUnderscoreParameters)
        assert not reflector.has_public_constructor(PrivateConstructor)


def test_registry_reflector_rejects_non_classes():
    with pytest.raises(TypeError):
        RegistryReflector(["tests.classes.DepDefinedClass"])


def test_interface_detection():
    assert is_interface(AliasInterface)
    assert is_interface(DepDefinedAbstract)
    assert not is_interface(DepDefinedClass)


def test_parameters_classify_autowired_class():
    specs = {p.name: p for p in ImportReflector().parameters(AutowiredClass)}

    assert list(specs) == [
        "dep_defined_interface",
        "dep_defined_abstract",
        "dep_defined_class",
        "dep_undefined_nullable_interface",
        "dep_undefined_nullable_abstract",
        "dep_undefined_class",
        "dep_nullable_value",
        "dep_default_value",
    ]
    assert specs["dep_defined_class"].kind is TypeKind.NAMED
    assert specs["dep_defined_class"].type_name == "tests.classes.DepDefinedClass"
    assert not specs["dep_defined_class"].nullable
    assert specs["dep_undefined_nullable_interface"].nullable
    assert specs["dep_undefined_nullable_abstract"].kind is TypeKind.NAMED
    assert specs["dep_undefined_nullable_abstract"].nullable
    assert specs["dep_nullable_value"].kind is TypeKind.BUILTIN
    assert specs["dep_nullable_value"].nullable
    assert specs["dep_default_value"].has_default
    assert specs["dep_default_value"].default == 1


def test_parameters_skip_variadics_and_flag_positional_only():
    specs = ImportReflector().parameters(PositionalOnly)

    assert [p.name for p in specs] == ["dep", "flag"]
    assert specs[0].positional_only
    assert not specs[1].positional_only


def test_parameters_of_class_without_constructor_is_empty():
    assert ImportReflector().parameters(DepDefinedClass) == []


def test_union_parameter_is_classified():
    (param,) = ImportReflector().parameters(UnionParameter)

    assert param.kind is TypeKind.UNION
    assert param.type_name == "UnionDependency1 | UnionDependency2"


def test_undefined_name_is_logged_and_isolated(caplog):
    with caplog.at_level(logging.WARNING, logger="wiremap._reflection"):
        dep, other = ImportReflector().parameters(NonExistingDefaultParameter)

    assert "'NonExistingClass' name error" in caplog.text
    assert dep.kind is TypeKind.UNDEFINED
    assert dep.type_name == "NonExistingClass"
    assert other.kind is TypeKind.NAMED
    assert other.nullable


def test_runtime_annotations_on_local_classes():
    class Port(Protocol): ...

    class Adapter:
        def __init__(self, port: Optional[Port], name: str = "x"):  # noqa: UP045
            self.port = port
            self.name = name

    port, name = RegistryReflector([Adapter]).parameters(Adapter)

    assert port.kind is TypeKind.NAMED
    assert port.type_name == identifier_of(Port)
    assert port.nullable
    assert name.kind is TypeKind.BUILTIN
    assert name.default == "x"
