"""Vector search requests: one ANN query against one vector field."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import common_pb2, milvus_pb2

from collection_schema.schema import CollectionSchema
from common.errors import MilvusValidationError
from config.settings import settings
from data_marshal.vector_codec import try_encode_query_vectors

# milvus.proto.common.DslType.BoolExprV1
BOOL_EXPR_DSL = common_pb2.DslType.BoolExprV1


class AnnSearch(BaseModel):
    """Query vectors (or BM25 query texts) for one field, plus search params."""

    model_config = ConfigDict(frozen=True)

    anns_field: str
    data: list[Any]
    limit: int = settings.default_top_k
    params: dict[str, Any] = {}
    metric_type: str | None = None
    expr: str | None = None

    def try_validate(self) -> "AnnSearch | MilvusValidationError":
        if not self.anns_field:
            return MilvusValidationError("anns_field", "cannot be empty")
        if not self.data:
            return MilvusValidationError("data", "at least one query vector is required")
        if self.limit <= 0:
            return MilvusValidationError("limit", "must be a positive integer")
        return self

    def validate(self) -> "AnnSearch":
        result = self.try_validate()
        if isinstance(result, MilvusValidationError):
            raise result
        return result


def try_build_search_request(
    search: AnnSearch,
    schema: CollectionSchema,
    output_fields: list[str] | None = None,
    db_name: str = "",
) -> milvus_pb2.SearchRequest | MilvusValidationError:
    """Assemble a ``SearchRequest`` with the encoded placeholder group."""
    result = search.try_validate()
    if isinstance(result, MilvusValidationError):
        return result

    field = schema.get_field(search.anns_field)
    if field is None or not field.is_vector:
        return MilvusValidationError("anns_field", f"'{search.anns_field}' is not a vector field of '{schema.name}'")

    placeholder_group = try_encode_query_vectors(search.data, field.kind, field.dimension)
    if isinstance(placeholder_group, MilvusValidationError):
        return placeholder_group

    search_params = {
        "anns_field": search.anns_field,
        "topk": str(search.limit),
        "params": json.dumps(search.params),
    }
    if search.metric_type:
        search_params["metric_type"] = search.metric_type

    return milvus_pb2.SearchRequest(
        db_name=db_name,
        collection_name=schema.name,
        dsl=search.expr or "",
        dsl_type=BOOL_EXPR_DSL,
        placeholder_group=placeholder_group,
        output_fields=output_fields or [],
        search_params=[common_pb2.KeyValuePair(key=k, value=v) for k, v in search_params.items()],
        nq=len(search.data),
    )


def build_search_request(
    search: AnnSearch,
    schema: CollectionSchema,
    output_fields: list[str] | None = None,
    db_name: str = "",
) -> milvus_pb2.SearchRequest:
    result = try_build_search_request(search, schema, output_fields, db_name)
    if isinstance(result, MilvusValidationError):
        raise result
    return result
