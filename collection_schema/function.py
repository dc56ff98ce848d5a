"""Collection functions, e.g. BM25 turning analyzed text into sparse vectors."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import common_pb2, schema_pb2

from common.errors import MilvusValidationError


class FunctionType(str, Enum):
    BM25 = "BM25"
    TEXT_EMBEDDING = "TextEmbedding"
    RERANK = "Rerank"


# milvus.proto.schema.FunctionType
_TYPE_TO_WIRE = {
    FunctionType.BM25: schema_pb2.FunctionType.BM25,
    FunctionType.TEXT_EMBEDDING: schema_pb2.FunctionType.TextEmbedding,
    FunctionType.RERANK: schema_pb2.FunctionType.Rerank,
}
_WIRE_TO_TYPE = {code: kind for kind, code in _TYPE_TO_WIRE.items()}


class Function(BaseModel):
    """A server-side transform from input fields to output fields."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FunctionType
    input_field_names: list[str] = []
    output_field_names: list[str] = []
    params: dict[str, str] = {}

    @classmethod
    def new(cls, name: str, type: FunctionType | str) -> "Function":
        return cls(name=str(name), type=FunctionType(type))

    def with_inputs(self, names: list[str]) -> "Function":
        return self.model_copy(update={"input_field_names": [str(n) for n in names]})

    def with_outputs(self, names: list[str]) -> "Function":
        return self.model_copy(update={"output_field_names": [str(n) for n in names]})

    def with_param(self, key: str, value: str) -> "Function":
        return self.model_copy(update={"params": {**self.params, key: value}})

    def to_wire(self) -> schema_pb2.FunctionSchema:
        return schema_pb2.FunctionSchema(
            name=self.name,
            type=_TYPE_TO_WIRE[self.type],
            input_field_names=self.input_field_names,
            output_field_names=self.output_field_names,
            params=[common_pb2.KeyValuePair(key=k, value=v) for k, v in self.params.items()],
        )

    @classmethod
    def from_wire(cls, proto: schema_pb2.FunctionSchema) -> "Function":
        if proto.type not in _WIRE_TO_TYPE:
            raise MilvusValidationError(
                "functions", f"unsupported function type {proto.type} for '{proto.name}'"
            )
        return cls(
            name=proto.name,
            type=_WIRE_TO_TYPE[proto.type],
            input_field_names=list(proto.input_field_names),
            output_field_names=list(proto.output_field_names),
            params={pair.key: pair.value for pair in proto.params},
        )


def bm25(name: str, input: str | list[str], output: str | list[str]) -> Function:
    """BM25 full-text function.

    Example:
        bm25("bm25_fn", input="content", output="content_sparse")
    """
    inputs = input if isinstance(input, list) else [input]
    outputs = output if isinstance(output, list) else [output]
    return Function.new(name, FunctionType.BM25).with_inputs(inputs).with_outputs(outputs)
