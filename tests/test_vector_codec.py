"""Tests for data_marshal.vector_codec."""

import struct

import pytest
from pymilvus.grpc_gen import common_pb2

from collection_schema.field_types import FieldKind
from common.errors import MilvusValidationError
from data_marshal.vector_codec import (
    PLACEHOLDER_TAG,
    encode_query_vector,
    encode_query_vectors,
    normalize_sparse,
    placeholder_type,
    try_encode_query_vectors,
)


def _group(payload: bytes) -> common_pb2.PlaceholderValue:
    group = common_pb2.PlaceholderGroup()
    group.ParseFromString(payload)
    assert len(group.placeholders) == 1
    return group.placeholders[0]


class TestEncodeQueryVector:
    def test_float_vector_is_little_endian_float32(self):
        encoded = encode_query_vector([1.0, 0.5], FieldKind.FLOAT_VECTOR, 2)
        assert len(encoded) == 8
        assert encoded == struct.pack("<2f", 1.0, 0.5)

    def test_integers_promoted(self):
        assert encode_query_vector([1, 2], FieldKind.FLOAT_VECTOR) == struct.pack("<2f", 1.0, 2.0)

    def test_reduced_precision_kinds_use_float32(self):
        for kind in (FieldKind.FLOAT16_VECTOR, FieldKind.BFLOAT16_VECTOR, FieldKind.INT8_VECTOR):
            assert len(encode_query_vector([1, 2, 3], kind, 3)) == 12

    def test_binary_passed_through(self):
        raw = bytes(range(16))
        assert encode_query_vector(raw, FieldKind.BINARY_VECTOR, 128) == raw

    def test_binary_size_checked(self):
        with pytest.raises(ValueError):
            encode_query_vector(bytes(4), FieldKind.BINARY_VECTOR, 128)

    def test_dimension_checked(self):
        with pytest.raises(ValueError):
            encode_query_vector([1.0, 2.0, 3.0], FieldKind.FLOAT_VECTOR, 2)

    def test_sparse_layout(self):
        encoded = encode_query_vector({5: 0.5, 1: 1.0}, FieldKind.SPARSE_FLOAT_VECTOR)
        assert encoded == struct.pack("<If", 1, 1.0) + struct.pack("<If", 5, 0.5)


class TestPlaceholderGroup:
    def test_group_shape(self):
        value = _group(encode_query_vectors([[1.0, 0.5], [0.0, 1.0]], FieldKind.FLOAT_VECTOR, 2))
        assert value.tag == PLACEHOLDER_TAG
        assert value.type == 101
        assert list(value.values) == [struct.pack("<2f", 1.0, 0.5), struct.pack("<2f", 0.0, 1.0)]

    def test_placeholder_types(self):
        assert placeholder_type(FieldKind.BINARY_VECTOR) == 100
        assert placeholder_type(FieldKind.SPARSE_FLOAT_VECTOR) == 104
        assert placeholder_type(FieldKind.INT8_VECTOR) == 105

    def test_text_queries_for_sparse_field(self):
        value = _group(encode_query_vectors(["car insurance"], FieldKind.SPARSE_FLOAT_VECTOR))
        assert value.type == 21
        assert list(value.values) == [b"car insurance"]

    def test_bad_component_becomes_validation_error(self):
        result = try_encode_query_vectors([[1.0, "x"]], FieldKind.FLOAT_VECTOR)
        assert isinstance(result, MilvusValidationError)
        assert result.field == "vectors"
        assert "Failed to encode vectors" in result.message

    def test_raising_wrapper(self):
        with pytest.raises(MilvusValidationError):
            encode_query_vectors([[1.0]], FieldKind.FLOAT_VECTOR, 2)


class TestSparse:
    def test_normalize_sorts_by_index(self):
        assert normalize_sparse({9: 1, 2: 0.5}) == [(2, 0.5), (9, 1.0)]
        assert normalize_sparse([(3, 1.0), (1, 2.0)]) == [(1, 2.0), (3, 1.0)]
