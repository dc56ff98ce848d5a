"""Shared schema fixtures and a scripted RPC collaborator."""

from unittest.mock import MagicMock

import pytest
from pymilvus.grpc_gen import common_pb2

from collection_schema import CollectionSchema, primary_key, scalar, varchar, vector
from collection_schema.field_types import FieldKind


@pytest.fixture
def movie_schema() -> CollectionSchema:
    return (
        CollectionSchema.new("movies")
        .with_description("Movie embeddings")
        .add_field(primary_key("id"))
        .add_field(varchar("title", 512))
        .add_field(vector("embedding", 2))
    )


@pytest.fixture
def scored_schema() -> CollectionSchema:
    return (
        CollectionSchema.new("scored")
        .add_field(primary_key("id"))
        .add_field(varchar("title", 128))
        .add_field(scalar("score", FieldKind.DOUBLE))
    )


@pytest.fixture
def ok_status() -> common_pb2.Status:
    return common_pb2.Status(code=0)


def make_invoker(responses: dict) -> MagicMock:
    """Invoker whose ``invoke`` answers by operation name.

    A value that is an exception instance is raised instead of returned.
    """
    invoker = MagicMock()

    def invoke(operation, request):
        response = responses[operation]
        if isinstance(response, Exception):
            raise response
        return response

    invoker.invoke.side_effect = invoke
    return invoker


@pytest.fixture
def invoker_factory():
    return make_invoker
