"""Row/column marshaling and vector encoding."""

from data_marshal.data import Data, decode_field_data
from data_marshal.vector_codec import encode_query_vectors, try_encode_query_vectors

__all__ = ["Data", "decode_field_data", "encode_query_vectors", "try_encode_query_vectors"]
