"""Tests for migration.migrator."""

import pytest
from pymilvus.grpc_gen import common_pb2, milvus_pb2, schema_pb2

from collection_schema import CollectionSchema, primary_key, varchar
from common.errors import ConnectivityError, MilvusValidationError, SchemaMismatchError
from migration import index
from migration.index_reconciler import IndexAction
from migration.migrator import migrate

OK = common_pb2.Status(code=0)
NOT_FOUND = milvus_pb2.DescribeIndexResponse(status=common_pb2.Status(code=700, reason="index not found"))


def _has(value: bool) -> milvus_pb2.BoolResponse:
    return milvus_pb2.BoolResponse(status=OK, value=value)


def _described(schema: CollectionSchema) -> milvus_pb2.DescribeCollectionResponse:
    return milvus_pb2.DescribeCollectionResponse(status=OK, schema=schema.to_wire())


class TestMigrate:
    def test_creates_missing_collection(self, movie_schema, invoker_factory):
        invoker = invoker_factory(
            {"HasCollection": _has(False), "CreateCollection": OK, "DescribeIndex": NOT_FOUND, "CreateIndex": OK}
        )
        result = migrate(invoker, movie_schema, [index.hnsw("embedding")], db_name="default")

        assert result.created
        assert result.diff is None
        assert result.index_actions == {"embedding": IndexAction.CREATED}

        create_request = invoker.invoke.call_args_list[1].args[1]
        sent = schema_pb2.CollectionSchema()
        sent.ParseFromString(create_request.schema)
        assert [f.name for f in sent.fields] == ["id", "title", "embedding"]

    def test_existing_collection_is_compared(self, movie_schema, invoker_factory):
        invoker = invoker_factory({"HasCollection": _has(True), "DescribeCollection": _described(movie_schema)})
        result = migrate(invoker, movie_schema, strict=True)

        assert not result.created
        assert result.diff is None
        operations = [c.args[0] for c in invoker.invoke.call_args_list]
        assert "CreateCollection" not in operations

    def test_drift_reported_not_repaired(self, movie_schema, invoker_factory):
        deployed = movie_schema.model_copy(
            update={"fields": [primary_key("id"), varchar("title", 64), movie_schema.get_field("embedding")]}
        )
        invoker = invoker_factory({"HasCollection": _has(True), "DescribeCollection": _described(deployed)})
        result = migrate(invoker, movie_schema, strict=False)

        assert [m.name for m in result.diff.mismatches] == ["title"]
        operations = [c.args[0] for c in invoker.invoke.call_args_list]
        assert operations == ["HasCollection", "DescribeCollection"]

    def test_strict_drift_raises(self, movie_schema, invoker_factory):
        deployed = movie_schema.model_copy(update={"fields": movie_schema.fields[:2]})
        invoker = invoker_factory({"HasCollection": _has(True), "DescribeCollection": _described(deployed)})
        with pytest.raises(SchemaMismatchError) as exc_info:
            migrate(invoker, movie_schema, strict=True)
        assert exc_info.value.diff.missing == ["embedding"]

    def test_invalid_schema_rejected_before_any_call(self, invoker_factory):
        invoker = invoker_factory({})
        with pytest.raises(MilvusValidationError):
            migrate(invoker, CollectionSchema.new("empty"))
        invoker.invoke.assert_not_called()

    def test_read_failure_is_fatal(self, movie_schema, invoker_factory):
        invoker = invoker_factory({"HasCollection": ConnectionError("unreachable")})
        with pytest.raises(ConnectivityError, match="unreachable"):
            migrate(invoker, movie_schema)
