"""Tests for search.ann_search."""

import json
import struct

import pytest
from pymilvus.grpc_gen import common_pb2

from collection_schema import build, bm25, primary_key, sparse_vector, varchar
from common.errors import MilvusValidationError
from search.ann_search import AnnSearch, build_search_request, try_build_search_request


class TestAnnSearch:
    def test_default_limit_from_settings(self):
        assert AnnSearch(anns_field="embedding", data=[[0.1, 0.2]]).limit == 10

    def test_validation(self):
        assert AnnSearch(anns_field="", data=[[1.0]]).try_validate().field == "anns_field"
        assert AnnSearch(anns_field="v", data=[]).try_validate().field == "data"
        assert AnnSearch(anns_field="v", data=[[1.0]], limit=0).try_validate().field == "limit"


class TestBuildSearchRequest:
    def test_request_shape(self, movie_schema):
        search = AnnSearch(
            anns_field="embedding",
            data=[[1.0, 0.5]],
            limit=5,
            params={"ef": 64},
            metric_type="COSINE",
            expr="id > 10",
        )
        request = build_search_request(search, movie_schema, output_fields=["title"])

        assert request.collection_name == "movies"
        assert request.dsl == "id > 10"
        assert request.dsl_type == common_pb2.DslType.BoolExprV1
        assert request.nq == 1
        assert list(request.output_fields) == ["title"]

        params = {p.key: p.value for p in request.search_params}
        assert params["anns_field"] == "embedding"
        assert params["topk"] == "5"
        assert params["metric_type"] == "COSINE"
        assert json.loads(params["params"]) == {"ef": 64}

        group = common_pb2.PlaceholderGroup()
        group.ParseFromString(request.placeholder_group)
        assert list(group.placeholders[0].values) == [struct.pack("<2f", 1.0, 0.5)]

    def test_unknown_field(self, movie_schema):
        result = try_build_search_request(AnnSearch(anns_field="title", data=[[1.0]]), movie_schema)
        assert isinstance(result, MilvusValidationError)
        assert result.field == "anns_field"

    def test_wrong_dimension(self, movie_schema):
        with pytest.raises(MilvusValidationError, match="Failed to encode vectors"):
            build_search_request(AnnSearch(anns_field="embedding", data=[[1.0, 2.0, 3.0]]), movie_schema)

    def test_bm25_text_query(self):
        schema = build(
            name="docs",
            fields=[primary_key("id"), varchar("content", 256, enable_analyzer=True), sparse_vector("sparse")],
            functions=[bm25("fn", input="content", output="sparse")],
        )
        request = build_search_request(AnnSearch(anns_field="sparse", data=["hello world"]), schema)
        group = common_pb2.PlaceholderGroup()
        group.ParseFromString(request.placeholder_group)
        assert group.placeholders[0].type == common_pb2.PlaceholderType.VarChar
