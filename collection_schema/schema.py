"""Collection schema: an ordered field list plus functions, with validation.

Example:
    schema = (
        CollectionSchema.new("movies")
        .with_description("Movie embeddings")
        .add_field(primary_key("id", auto_id=True))
        .add_field(varchar("title", 512))
        .add_field(vector("embedding", 128))
        .with_dynamic_field()
        .validate()
    )
"""

from collections import Counter

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import schema_pb2

from collection_schema.field import Field, validate_name
from collection_schema.field_types import SCALAR_KINDS, TEXT_KINDS, VECTOR_KINDS, FieldKind
from collection_schema.function import Function, FunctionType
from common.errors import MilvusValidationError

# Reserved column holding per-row dynamic attributes
DYNAMIC_FIELD_NAME = "$meta"


class CollectionSchema(BaseModel):
    """Structure of one collection. Field order is the wire order."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    fields: list[Field] = []
    functions: list[Function] = []
    enable_dynamic_field: bool = False

    @classmethod
    def new(cls, name: str) -> "CollectionSchema":
        return cls(name=str(name))

    def with_description(self, description: str) -> "CollectionSchema":
        return self.model_copy(update={"description": description})

    def add_field(self, field: Field) -> "CollectionSchema":
        return self.model_copy(update={"fields": [*self.fields, field]})

    def add_fields(self, fields: list[Field]) -> "CollectionSchema":
        return self.model_copy(update={"fields": [*self.fields, *fields]})

    def add_function(self, function: Function) -> "CollectionSchema":
        return self.model_copy(update={"functions": [*self.functions, function]})

    def with_dynamic_field(self, enabled: bool = True) -> "CollectionSchema":
        return self.model_copy(update={"enable_dynamic_field": enabled})

    # ── Lookups ──────────────────────────────────────────────────

    def get_field(self, name: str) -> Field | None:
        return next((f for f in self.fields if f.name == name), None)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def primary_key_field(self) -> Field | None:
        return next((f for f in self.fields if f.is_primary_key), None)

    def vector_fields(self) -> list[Field]:
        return [f for f in self.fields if f.kind in VECTOR_KINDS]

    def scalar_fields(self) -> list[Field]:
        return [f for f in self.fields if f.kind in SCALAR_KINDS]

    def struct_array_fields(self) -> list[Field]:
        return [f for f in self.fields if f.is_array_of_struct]

    def dynamic_fields(self) -> list[Field]:
        return [f for f in self.fields if f.is_dynamic]

    def function_output_names(self) -> set[str]:
        return {name for func in self.functions for name in func.output_field_names}

    # ── Validation ───────────────────────────────────────────────

    def try_validate(self) -> "CollectionSchema | MilvusValidationError":
        """Return the schema itself, or the first rule violation found.

        Rules run in order: collection name, non-empty field list, exactly
        one primary key, unique field names, every field, functions,
        declared dynamic fields.
        """
        for rule in SCHEMA_RULES:
            error = rule(self)
            if error is not None:
                return error
        return self

    def validate(self) -> "CollectionSchema":
        result = self.try_validate()
        if isinstance(result, MilvusValidationError):
            raise result
        return result

    # ── Wire conversion ──────────────────────────────────────────

    def to_wire(self) -> schema_pb2.CollectionSchema:
        """Build the wire schema.

        ``array_of_struct`` fields go to ``struct_array_fields``; declared
        dynamic fields live in the reserved metadata column and are not sent.
        """
        outputs = self.function_output_names()
        regular = [f for f in self.fields if not f.is_array_of_struct and not f.is_dynamic]

        return schema_pb2.CollectionSchema(
            name=self.name,
            description=self.description or "",
            fields=[f.to_wire(is_function_output=f.name in outputs) for f in regular],
            struct_array_fields=[f.to_struct_array_wire() for f in self.struct_array_fields()],
            enable_dynamic_field=self.enable_dynamic_field,
            functions=[func.to_wire() for func in self.functions],
        )

    @classmethod
    def from_wire(cls, proto: schema_pb2.CollectionSchema | None) -> "CollectionSchema | None":
        if proto is None:
            return None

        # The server lists the reserved metadata column as a dynamic field
        regular = [Field.from_wire(f) for f in proto.fields if not f.is_dynamic]
        struct_arrays = [Field.from_struct_array_wire(f) for f in proto.struct_array_fields]

        return cls(
            name=proto.name,
            description=proto.description or None,
            fields=regular + struct_arrays,
            functions=[Function.from_wire(f) for f in proto.functions],
            enable_dynamic_field=proto.enable_dynamic_field,
        )


def build(
    name: str | None = None,
    fields: list[Field] | None = None,
    description: str | None = None,
    enable_dynamic_field: bool = False,
    functions: list[Function] | None = None,
) -> CollectionSchema:
    result = try_build(name, fields, description, enable_dynamic_field, functions)
    if isinstance(result, MilvusValidationError):
        raise result
    return result


def try_build(
    name: str | None = None,
    fields: list[Field] | None = None,
    description: str | None = None,
    enable_dynamic_field: bool = False,
    functions: list[Function] | None = None,
) -> CollectionSchema | MilvusValidationError:
    """Assemble and validate a schema in one call."""
    if name is None:
        return MilvusValidationError("name", "name is required")
    if fields is None:
        return MilvusValidationError("fields", "fields are required")

    schema = CollectionSchema(
        name=name,
        description=description,
        fields=list(fields),
        functions=list(functions or []),
        enable_dynamic_field=enable_dynamic_field,
    )
    return schema.try_validate()


# ── Validation rules ─────────────────────────────────────────────


def _check_name(schema: CollectionSchema) -> MilvusValidationError | None:
    return validate_name(schema.name)


def _check_has_fields(schema: CollectionSchema) -> MilvusValidationError | None:
    if not schema.fields:
        return MilvusValidationError("fields", "at least one field is required")
    return None


def _check_primary_key(schema: CollectionSchema) -> MilvusValidationError | None:
    count = sum(1 for f in schema.fields if f.is_primary_key)
    if count == 0:
        return MilvusValidationError("primary_key", "exactly one primary key field is required")
    if count > 1:
        return MilvusValidationError(
            "primary_key", f"found {count} primary keys, exactly one is required"
        )
    return None


def _check_unique_names(schema: CollectionSchema) -> MilvusValidationError | None:
    counts = Counter(f.name for f in schema.fields)
    duplicates = [name for name, n in counts.items() if n > 1]
    if duplicates:
        return MilvusValidationError("fields", f"duplicate field names: {', '.join(duplicates)}")
    return None


def _check_fields(schema: CollectionSchema) -> MilvusValidationError | None:
    for field in schema.fields:
        result = field.try_validate()
        if isinstance(result, MilvusValidationError):
            return result
    return None


def _check_functions(schema: CollectionSchema) -> MilvusValidationError | None:
    by_name = {f.name: f for f in schema.fields}

    for func in schema.functions:
        is_bm25 = func.type == FunctionType.BM25

        bad_inputs = [
            name
            for name in func.input_field_names
            if name not in by_name
            or (is_bm25 and (by_name[name].kind not in TEXT_KINDS or not by_name[name].enable_analyzer))
        ]
        bad_outputs = [
            name
            for name in func.output_field_names
            if name not in by_name
            or (is_bm25 and by_name[name].kind != FieldKind.SPARSE_FLOAT_VECTOR)
        ]
        if not bad_inputs and not bad_outputs:
            continue

        problems = []
        if bad_inputs:
            requirement = "must exist and be text fields with enable_analyzer" if is_bm25 else "must exist"
            problems.append(f"input fields {bad_inputs} {requirement}")
        if bad_outputs:
            requirement = "must exist and be sparse_float_vector fields" if is_bm25 else "must exist"
            problems.append(f"output fields {bad_outputs} {requirement}")
        return MilvusValidationError("functions", f"function '{func.name}': {'; '.join(problems)}")

    return None


def _check_dynamic_fields(schema: CollectionSchema) -> MilvusValidationError | None:
    declared = [f.name for f in schema.dynamic_fields()]
    if declared and not schema.enable_dynamic_field:
        return MilvusValidationError(
            "enable_dynamic_field",
            f"dynamic fields {declared} require enable_dynamic_field",
        )
    return None


SCHEMA_RULES = [
    _check_name,
    _check_has_fields,
    _check_primary_key,
    _check_unique_names,
    _check_fields,
    _check_functions,
    _check_dynamic_fields,
]
