"""Field definitions: builder, validation rules and wire conversion.

A ``Field`` is immutable. Every ``with_*`` / ``as_*`` setter returns a new
copy, and validation only runs when asked for:

    embedding = Field.new("embedding", FieldKind.FLOAT_VECTOR).with_dimension(128)
    embedding.validate()

Validation applies the rules in ``FIELD_RULES`` order and reports only the
first failure.
"""

import json
import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import common_pb2, schema_pb2

from collection_schema import field_types
from collection_schema.field_types import (
    DENSE_VECTOR_KINDS,
    PRIMARY_KEY_KINDS,
    SCALAR_KINDS,
    VECTOR_KINDS,
    FieldKind,
)
from common.errors import MilvusValidationError
from config.settings import settings

NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_NAME_LENGTH = 255
MAX_VARCHAR_LENGTH = 65_535


class Field(BaseModel):
    """One column of a collection schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: FieldKind
    description: str | None = None
    dimension: int | None = None
    max_length: int | None = None
    element_type: FieldKind | None = None
    max_capacity: int | None = None
    nested_schema: list["Field"] | None = None
    is_primary_key: bool = False
    auto_id: bool = False
    nullable: bool = False
    is_partition_key: bool = False
    is_clustering_key: bool = False
    is_dynamic: bool = False
    enable_analyzer: bool = False
    default_value: Any = None

    @classmethod
    def new(cls, name: str, kind: FieldKind | str) -> "Field":
        return cls(name=str(name), kind=FieldKind(kind))

    # ── Fluent setters ───────────────────────────────────────────

    def with_description(self, description: str) -> "Field":
        return self.model_copy(update={"description": description})

    def with_dimension(self, dimension: int) -> "Field":
        return self.model_copy(update={"dimension": dimension})

    def with_max_length(self, max_length: int) -> "Field":
        return self.model_copy(update={"max_length": max_length})

    def with_element_type(self, element_type: FieldKind | str) -> "Field":
        return self.model_copy(update={"element_type": FieldKind(element_type)})

    def with_max_capacity(self, max_capacity: int) -> "Field":
        return self.model_copy(update={"max_capacity": max_capacity})

    def with_nested_schema(self, fields: list["Field"]) -> "Field":
        return self.model_copy(update={"nested_schema": list(fields)})

    def as_primary_key(self, value: bool = True) -> "Field":
        return self.model_copy(update={"is_primary_key": value})

    def with_auto_id(self, value: bool = True) -> "Field":
        return self.model_copy(update={"auto_id": value})

    def as_nullable(self, value: bool = True) -> "Field":
        return self.model_copy(update={"nullable": value})

    def as_partition_key(self, value: bool = True) -> "Field":
        return self.model_copy(update={"is_partition_key": value})

    def as_clustering_key(self, value: bool = True) -> "Field":
        return self.model_copy(update={"is_clustering_key": value})

    def as_dynamic(self, value: bool = True) -> "Field":
        return self.model_copy(update={"is_dynamic": value})

    def with_analyzer(self, value: bool = True) -> "Field":
        return self.model_copy(update={"enable_analyzer": value})

    def with_default(self, value: Any) -> "Field":
        return self.model_copy(update={"default_value": value})

    # ── Kind helpers ─────────────────────────────────────────────

    @property
    def is_vector(self) -> bool:
        return self.kind in VECTOR_KINDS

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    @property
    def is_array_of_struct(self) -> bool:
        return self.kind == FieldKind.ARRAY_OF_STRUCT

    # ── Validation ───────────────────────────────────────────────

    def try_validate(self) -> "Field | MilvusValidationError":
        """Return the field itself, or the first rule violation found."""
        for rule in FIELD_RULES:
            error = rule(self)
            if error is not None:
                return error
        return self

    def validate(self) -> "Field":
        """Like ``try_validate`` but raises the violation."""
        result = self.try_validate()
        if isinstance(result, MilvusValidationError):
            raise result
        return result

    # ── Wire conversion ──────────────────────────────────────────

    def to_wire(self, is_function_output: bool = False) -> schema_pb2.FieldSchema:
        proto = schema_pb2.FieldSchema(
            name=self.name,
            description=self.description or "",
            data_type=field_types.to_wire(self.kind),
            is_primary_key=self.is_primary_key,
            autoID=self.auto_id,
            type_params=_build_type_params(
                dimension=self.dimension,
                max_length=self.max_length,
                max_capacity=self.max_capacity,
                enable_analyzer=self.enable_analyzer,
            ),
            nullable=self.nullable,
            is_partition_key=self.is_partition_key,
            is_clustering_key=self.is_clustering_key,
            is_dynamic=self.is_dynamic,
            element_type=field_types.to_wire(self.element_type),
            is_function_output=is_function_output,
        )
        default = _default_to_wire(self.kind, self.default_value)
        if default is not None:
            proto.default_value.CopyFrom(default)
        return proto

    @classmethod
    def from_wire(cls, proto: schema_pb2.FieldSchema) -> "Field":
        kind = field_types.from_wire(proto.data_type)
        if kind is None:
            raise MilvusValidationError(
                "kind", f"unsupported wire data type {proto.data_type} for field '{proto.name}'"
            )
        params = parse_type_params(proto.type_params)
        default_value = (
            _default_from_wire(kind, proto.default_value) if proto.HasField("default_value") else None
        )

        return cls(
            name=proto.name,
            kind=kind,
            description=proto.description or None,
            dimension=params.get("dim"),
            max_length=params.get("max_length"),
            max_capacity=params.get("max_capacity"),
            enable_analyzer=params.get("enable_analyzer", False),
            element_type=field_types.from_wire(proto.element_type),
            is_primary_key=proto.is_primary_key,
            auto_id=proto.autoID,
            nullable=proto.nullable,
            is_partition_key=proto.is_partition_key,
            is_clustering_key=proto.is_clustering_key,
            is_dynamic=proto.is_dynamic,
            default_value=default_value,
        )

    def to_struct_array_wire(self) -> schema_pb2.StructArrayFieldSchema:
        """Wire shape for an ``array_of_struct`` field.

        Nested vectors become ``ArrayOfVector`` and nested scalars ``Array``,
        each carrying the struct's own ``max_capacity``.
        """
        return schema_pb2.StructArrayFieldSchema(
            name=self.name,
            description=self.description or "",
            fields=[_nested_to_wire(f, self.max_capacity) for f in self.nested_schema or []],
            type_params=_build_type_params(max_capacity=self.max_capacity),
        )

    @classmethod
    def from_struct_array_wire(cls, proto: schema_pb2.StructArrayFieldSchema) -> "Field":
        params = parse_type_params(proto.type_params)
        return cls(
            name=proto.name,
            kind=FieldKind.ARRAY_OF_STRUCT,
            description=proto.description or None,
            element_type=FieldKind.STRUCT,
            max_capacity=params.get("max_capacity"),
            nested_schema=[_nested_from_wire(f) for f in proto.fields],
        )


Field.model_rebuild()


# ── Smart constructors ───────────────────────────────────────────


def primary_key(
    name: str,
    kind: FieldKind | str = FieldKind.INT64,
    auto_id: bool = False,
    max_length: int | None = None,
    description: str | None = None,
) -> Field:
    """Primary key field; varchar keys default to a 64 character limit."""
    field = Field.new(name, kind).as_primary_key().with_auto_id(auto_id)
    if description:
        field = field.with_description(description)
    if field.kind == FieldKind.VARCHAR:
        field = field.with_max_length(max_length or settings.default_varchar_primary_key_length)
    return field


def vector(
    name: str,
    dimension: int,
    kind: FieldKind | str = FieldKind.FLOAT_VECTOR,
    description: str | None = None,
) -> Field:
    kind = FieldKind(kind)
    if kind not in DENSE_VECTOR_KINDS:
        raise ValueError(f"Invalid dense vector kind: {kind.value}")
    field = Field.new(name, kind).with_dimension(dimension)
    return field.with_description(description) if description else field


def sparse_vector(name: str, description: str | None = None) -> Field:
    field = Field.new(name, FieldKind.SPARSE_FLOAT_VECTOR)
    return field.with_description(description) if description else field


def varchar(
    name: str,
    max_length: int,
    nullable: bool = False,
    enable_analyzer: bool = False,
    default: str | None = None,
    description: str | None = None,
) -> Field:
    field = (
        Field.new(name, FieldKind.VARCHAR)
        .with_max_length(max_length)
        .as_nullable(nullable)
        .with_analyzer(enable_analyzer)
    )
    if description:
        field = field.with_description(description)
    if default is not None:
        field = field.with_default(default)
    return field


def scalar(
    name: str,
    kind: FieldKind | str,
    nullable: bool = False,
    default: Any = None,
    description: str | None = None,
) -> Field:
    kind = FieldKind(kind)
    if kind not in SCALAR_KINDS or kind == FieldKind.VARCHAR:
        raise ValueError(f"Invalid scalar kind: {kind.value} (use varchar() for varchar fields)")
    field = Field.new(name, kind).as_nullable(nullable)
    if description:
        field = field.with_description(description)
    if default is not None:
        field = field.with_default(default)
    return field


def array(
    name: str,
    element_type: FieldKind | str,
    max_capacity: int,
    max_length: int | None = None,
    nested_schema: list[Field] | None = None,
    nullable: bool = False,
    description: str | None = None,
) -> Field:
    """Array of scalars, or of structs when ``element_type`` is ``struct``."""
    element_type = FieldKind(element_type)
    kind = FieldKind.ARRAY_OF_STRUCT if element_type == FieldKind.STRUCT else FieldKind.ARRAY

    field = (
        Field.new(name, kind)
        .with_element_type(element_type)
        .with_max_capacity(max_capacity)
        .as_nullable(nullable)
    )
    if element_type == FieldKind.VARCHAR:
        field = field.with_max_length(max_length or settings.default_array_varchar_length)
    elif element_type == FieldKind.STRUCT:
        if not nested_schema:
            raise ValueError("nested_schema is required for arrays of structs")
        field = field.with_nested_schema(nested_schema)
    return field.with_description(description) if description else field


def struct(name: str, fields: list[Field], description: str | None = None) -> Field:
    field = Field.new(name, FieldKind.STRUCT).with_nested_schema(fields)
    return field.with_description(description) if description else field


# ── Validation rules ─────────────────────────────────────────────


def _invalid(field: str, message: str) -> MilvusValidationError:
    return MilvusValidationError(field, message)


def validate_name(name: str, attribute: str = "name") -> MilvusValidationError | None:
    """Shared naming rule for fields and collections."""
    if len(name) == 0:
        return _invalid(attribute, "cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        return _invalid(attribute, f"cannot exceed {MAX_NAME_LENGTH} characters")
    if not NAME_PATTERN.match(name):
        return _invalid(
            attribute,
            "must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores",
        )
    return None


def _check_name(field: Field) -> MilvusValidationError | None:
    return validate_name(field.name)


def _check_vector_dimension(field: Field) -> MilvusValidationError | None:
    if field.kind not in DENSE_VECTOR_KINDS:
        return None
    if field.dimension is None:
        return _invalid("dimension", f"is required for {field.kind.value} fields")
    if field.dimension < 1:
        return _invalid("dimension", "must be a positive integer")
    if field.kind == FieldKind.BINARY_VECTOR and field.dimension % 8 != 0:
        return _invalid("dimension", "must be a multiple of 8 for binary vectors")
    return None


def _check_varchar_length(field: Field) -> MilvusValidationError | None:
    is_varchar_array = field.kind == FieldKind.ARRAY and field.element_type == FieldKind.VARCHAR
    if field.kind != FieldKind.VARCHAR and not is_varchar_array:
        return None
    if field.max_length is None:
        target = "varchar array elements" if is_varchar_array else "varchar fields"
        return _invalid("max_length", f"is required for {target}")
    if not 1 <= field.max_length <= MAX_VARCHAR_LENGTH:
        return _invalid("max_length", f"must be between 1 and {MAX_VARCHAR_LENGTH}")
    return None


def _check_capacity(field: Field) -> MilvusValidationError | None:
    if field.max_capacity is None:
        return _invalid("max_capacity", f"is required for {field.kind.value} fields")
    if field.max_capacity < 1:
        return _invalid("max_capacity", "must be a positive integer")
    return None


def _check_nested_schema(field: Field) -> MilvusValidationError | None:
    if not field.nested_schema:
        return _invalid("nested_schema", f"is required for {field.kind.value} fields")
    for nested in field.nested_schema:
        if nested.kind not in SCALAR_KINDS and nested.kind not in VECTOR_KINDS:
            return _invalid(
                "nested_schema",
                f"nested field '{nested.name}' must be a scalar or vector, not {nested.kind.value}",
            )
        result = nested.try_validate()
        if isinstance(result, MilvusValidationError):
            return result
    return None


def _check_array_config(field: Field) -> MilvusValidationError | None:
    if field.kind == FieldKind.ARRAY:
        if field.element_type is None:
            return _invalid("element_type", "is required for array fields")
        if field.element_type not in SCALAR_KINDS:
            return _invalid(
                "element_type",
                f"must be a scalar kind for array fields, not {field.element_type.value}",
            )
        return _check_capacity(field)

    if field.kind == FieldKind.ARRAY_OF_STRUCT:
        if field.element_type != FieldKind.STRUCT:
            return _invalid("element_type", "must be struct for array_of_struct fields")
        return _check_capacity(field) or _check_nested_schema(field)

    if field.kind == FieldKind.STRUCT:
        return _check_nested_schema(field)

    return None


def _check_primary_key(field: Field) -> MilvusValidationError | None:
    if field.is_primary_key and field.kind not in PRIMARY_KEY_KINDS:
        return _invalid("kind", "primary key must be int64 or varchar")
    if field.auto_id and field.kind != FieldKind.INT64:
        return _invalid("auto_id", "auto ID is only supported for int64 primary keys")
    return None


def _check_dynamic(field: Field) -> MilvusValidationError | None:
    if field.is_dynamic and field.kind not in SCALAR_KINDS:
        return _invalid(
            "is_dynamic",
            f"dynamic fields must be scalar, not {field.kind.value}",
        )
    return None


FIELD_RULES: list[Callable[[Field], MilvusValidationError | None]] = [
    _check_name,
    _check_vector_dimension,
    _check_varchar_length,
    _check_array_config,
    _check_primary_key,
    _check_dynamic,
]


# ── Parameter bag ────────────────────────────────────────────────


def _build_type_params(
    dimension: int | None = None,
    max_length: int | None = None,
    max_capacity: int | None = None,
    enable_analyzer: bool = False,
) -> list[common_pb2.KeyValuePair]:
    params = []
    if dimension is not None:
        params.append(common_pb2.KeyValuePair(key="dim", value=str(dimension)))
    if max_length is not None:
        params.append(common_pb2.KeyValuePair(key="max_length", value=str(max_length)))
    if max_capacity is not None:
        params.append(common_pb2.KeyValuePair(key="max_capacity", value=str(max_capacity)))
    if enable_analyzer:
        params.append(common_pb2.KeyValuePair(key="enable_analyzer", value="true"))
    return params


def parse_type_params(params) -> dict[str, Any]:
    """Read ``dim`` / ``max_length`` / ``max_capacity`` / ``enable_analyzer``.

    Unknown keys are ignored and missing keys stay absent.
    """
    parsed: dict[str, Any] = {}
    for pair in params:
        if pair.key in ("dim", "max_length", "max_capacity"):
            parsed[pair.key] = int(pair.value)
        elif pair.key == "enable_analyzer":
            parsed[pair.key] = pair.value.lower() == "true"
    return parsed


def _nested_to_wire(field: Field, max_capacity: int | None) -> schema_pb2.FieldSchema:
    wire_kind = field_types.WIRE_ARRAY_OF_VECTOR if field.is_vector else field_types.to_wire(FieldKind.ARRAY)
    return schema_pb2.FieldSchema(
        name=field.name,
        description=field.description or "",
        data_type=wire_kind,
        type_params=_build_type_params(
            dimension=field.dimension,
            max_length=field.max_length,
            max_capacity=max_capacity,
        ),
        nullable=field.nullable,
        element_type=field_types.to_wire(field.kind),
    )


def _nested_from_wire(proto: schema_pb2.FieldSchema) -> Field:
    if proto.data_type not in (field_types.WIRE_ARRAY_OF_VECTOR, field_types.to_wire(FieldKind.ARRAY)):
        return Field.from_wire(proto)

    kind = field_types.from_wire(proto.element_type)
    if kind is None:
        raise MilvusValidationError(
            "kind", f"unsupported nested element type {proto.element_type} for field '{proto.name}'"
        )
    params = parse_type_params(proto.type_params)
    return Field(
        name=proto.name,
        kind=kind,
        description=proto.description or None,
        dimension=params.get("dim"),
        max_length=params.get("max_length"),
        nullable=proto.nullable,
    )


# ── Default values ───────────────────────────────────────────────

_DEFAULT_SLOTS = {
    FieldKind.BOOL: "bool_data",
    FieldKind.INT8: "int_data",
    FieldKind.INT16: "int_data",
    FieldKind.INT32: "int_data",
    FieldKind.INT64: "long_data",
    FieldKind.FLOAT: "float_data",
    FieldKind.DOUBLE: "double_data",
    FieldKind.VARCHAR: "string_data",
    FieldKind.TEXT: "string_data",
    FieldKind.JSON: "bytes_data",
}


def _default_to_wire(kind: FieldKind, value: Any) -> schema_pb2.ValueField | None:
    slot = _DEFAULT_SLOTS.get(kind)
    if value is None or slot is None:
        return None
    if kind == FieldKind.JSON:
        value = value if isinstance(value, bytes) else json.dumps(value).encode()
    return schema_pb2.ValueField(**{slot: value})


def _default_from_wire(kind: FieldKind, proto: schema_pb2.ValueField) -> Any:
    slot = proto.WhichOneof("data")
    if slot is None:
        return None
    value = getattr(proto, slot)
    if kind == FieldKind.JSON and isinstance(value, bytes):
        return json.loads(value)
    return value
