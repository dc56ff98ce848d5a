"""Tests for migration.index."""

import pytest

from common.errors import MilvusValidationError
from migration import index
from migration.index import IndexDescriptor, IndexType, InvertedIndexAlgo, MetricType


class TestBuilders:
    def test_hnsw_defaults(self):
        desc = index.hnsw("embedding")
        assert desc.index_type == IndexType.HNSW
        assert desc.metric_type == MetricType.COSINE
        assert desc.params == {"M": 16, "efConstruction": 256}
        assert desc.index_name is None

    def test_metric_from_string(self):
        assert index.flat("v", metric_type="IP").metric_type == MetricType.IP

    def test_ivf_family_default_nlist(self):
        for desc in (index.ivf_flat("v"), index.ivf_sq8("v"), index.scann("v")):
            assert desc.params == {"nlist": 1024}

    def test_ivf_pq(self):
        desc = index.ivf_pq("v", m=8)
        assert desc.params == {"nlist": 1024, "m": 8, "nbits": 8}

    def test_sparse_bm25_defaults(self):
        desc = index.sparse_bm25("content_sparse")
        assert desc.index_type == IndexType.SPARSE_INVERTED_INDEX
        assert desc.metric_type == MetricType.BM25
        assert desc.params == {
            "inverted_index_algo": "DAAT_MAXSCORE",
            "bm25_k1": 1.2,
            "bm25_b": 0.75,
            "drop_ratio_build": 0.2,
        }

    def test_sparse_bm25_options(self):
        desc = index.sparse_bm25(
            "content_sparse",
            inverted_index_algo=InvertedIndexAlgo.TAAT_NAIVE,
            bm25_k1=1.5,
            bm25_b=None,
            index_name="bm25_idx",
        )
        assert desc.index_name == "bm25_idx"
        assert desc.set_params() == {"inverted_index_algo": "TAAT_NAIVE", "bm25_k1": 1.5, "drop_ratio_build": 0.2}

    def test_sparse_bm25_unknown_algo(self):
        with pytest.raises(ValueError):
            index.sparse_bm25("content_sparse", inverted_index_algo="BLOCK_MAX")

    def test_every_builder_takes_index_name(self):
        builders = (
            index.flat("v", index_name="idx"),
            index.ivf_flat("v", index_name="idx"),
            index.ivf_sq8("v", index_name="idx"),
            index.ivf_pq("v", m=8, index_name="idx"),
            index.hnsw("v", index_name="idx"),
            index.autoindex("v", index_name="idx"),
            index.diskann("v", index_name="idx"),
            index.scann("v", index_name="idx"),
            index.sparse_bm25("v", index_name="idx"),
        )
        assert {desc.index_name for desc in builders} == {"idx"}


class TestValidation:
    def test_valid(self):
        desc = index.hnsw("v")
        assert desc.validate() is desc

    def test_non_positive_param(self):
        error = index.hnsw("v", m=0).try_validate()
        assert isinstance(error, MilvusValidationError)
        assert error.field == "M"

    def test_unset_param_allowed(self):
        assert index.hnsw("v", m=None).try_validate().field_name == "v"

    def test_empty_field_name(self):
        with pytest.raises(MilvusValidationError):
            index.autoindex("").validate()


class TestWire:
    def test_extra_params(self):
        pairs = index.hnsw("v", metric_type="L2", m=32, ef_construction=None).to_extra_params()
        assert [(p.key, p.value) for p in pairs] == [("index_type", "HNSW"), ("metric_type", "L2"), ("M", "32")]

    def test_no_param_pairs_when_empty(self):
        keys = [p.key for p in index.autoindex("v").to_extra_params()]
        assert keys == ["index_type", "metric_type"]

    def test_sparse_bm25_extra_params(self):
        params = {p.key: p.value for p in index.sparse_bm25("content_sparse").to_extra_params()}
        assert params == {
            "index_type": "SPARSE_INVERTED_INDEX",
            "metric_type": "BM25",
            "inverted_index_algo": "DAAT_MAXSCORE",
            "bm25_k1": "1.2",
            "bm25_b": "0.75",
            "drop_ratio_build": "0.2",
        }

    def test_create_index_request(self):
        desc = IndexDescriptor(field_name="v", index_type="FLAT", metric_type="L2").with_index_name("v_idx")
        request = desc.create_index_request("movies", db_name="default")
        assert request.collection_name == "movies"
        assert request.field_name == "v"
        assert request.index_name == "v_idx"
