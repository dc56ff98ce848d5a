"""Index descriptors: what index a field should carry and with which params."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import common_pb2, milvus_pb2

from common.errors import MilvusValidationError
from config.settings import settings


class IndexType(str, Enum):
    FLAT = "FLAT"
    IVF_FLAT = "IVF_FLAT"
    IVF_SQ8 = "IVF_SQ8"
    IVF_PQ = "IVF_PQ"
    HNSW = "HNSW"
    AUTOINDEX = "AUTOINDEX"
    DISKANN = "DISKANN"
    GPU_IVF_FLAT = "GPU_IVF_FLAT"
    GPU_IVF_PQ = "GPU_IVF_PQ"
    SCANN = "SCANN"
    SPARSE_INVERTED_INDEX = "SPARSE_INVERTED_INDEX"


class MetricType(str, Enum):
    L2 = "L2"
    IP = "IP"
    COSINE = "COSINE"
    HAMMING = "HAMMING"
    JACCARD = "JACCARD"
    MAX_SIM_COSINE = "MAX_SIM_COSINE"
    MAX_SIM_IP = "MAX_SIM_IP"
    BM25 = "BM25"


class InvertedIndexAlgo(str, Enum):
    DAAT_MAXSCORE = "DAAT_MAXSCORE"
    DAAT_WAND = "DAAT_WAND"
    TAAT_NAIVE = "TAAT_NAIVE"


# Numeric build params compared during reconciliation, per index type
TYPE_PARAMS: dict[IndexType, tuple[str, ...]] = {
    IndexType.HNSW: ("M", "efConstruction"),
    IndexType.IVF_FLAT: ("nlist",),
    IndexType.IVF_SQ8: ("nlist",),
    IndexType.SCANN: ("nlist",),
    IndexType.IVF_PQ: ("nlist", "m", "nbits"),
}

_POSITIVE_INT_PARAMS = ("M", "efConstruction", "nlist", "m", "nbits")


class IndexDescriptor(BaseModel):
    """Desired index for one field."""

    model_config = ConfigDict(frozen=True)

    field_name: str
    index_type: IndexType
    metric_type: MetricType
    index_name: str | None = None
    params: dict[str, Any] = {}

    def with_index_name(self, index_name: str) -> "IndexDescriptor":
        return self.model_copy(update={"index_name": index_name})

    def with_param(self, key: str, value: Any) -> "IndexDescriptor":
        return self.model_copy(update={"params": {**self.params, key: value}})

    def set_params(self) -> dict[str, Any]:
        """Params with unset (None) entries dropped."""
        return {k: v for k, v in self.params.items() if v is not None}

    def try_validate(self) -> "IndexDescriptor | MilvusValidationError":
        if not self.field_name:
            return MilvusValidationError("field_name", "cannot be empty")
        for key in _POSITIVE_INT_PARAMS:
            value = self.params.get(key)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                return MilvusValidationError(key, "must be a positive integer")
        return self

    def validate(self) -> "IndexDescriptor":
        result = self.try_validate()
        if isinstance(result, MilvusValidationError):
            raise result
        return result

    def to_extra_params(self) -> list[common_pb2.KeyValuePair]:
        """``index_type``, ``metric_type``, then one string pair per set param."""
        pairs = [
            common_pb2.KeyValuePair(key="index_type", value=self.index_type.value),
            common_pb2.KeyValuePair(key="metric_type", value=self.metric_type.value),
        ]
        pairs.extend(common_pb2.KeyValuePair(key=k, value=str(v)) for k, v in self.set_params().items())
        return pairs

    def create_index_request(self, collection_name: str, db_name: str = "") -> milvus_pb2.CreateIndexRequest:
        return milvus_pb2.CreateIndexRequest(
            db_name=db_name,
            collection_name=collection_name,
            field_name=self.field_name,
            index_name=self.index_name or "",
            extra_params=self.to_extra_params(),
        )


# ── Builders ─────────────────────────────────────────────────────


def flat(
    field_name: str, metric_type: MetricType | str = MetricType.L2, index_name: str | None = None
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name, index_type=IndexType.FLAT, metric_type=metric_type, index_name=index_name
    )


def ivf_flat(
    field_name: str,
    metric_type: MetricType | str = MetricType.L2,
    nlist: int | None = settings.default_nlist,
    index_name: str | None = None,
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.IVF_FLAT,
        metric_type=metric_type,
        index_name=index_name,
        params={"nlist": nlist},
    )


def ivf_sq8(
    field_name: str,
    metric_type: MetricType | str = MetricType.L2,
    nlist: int | None = settings.default_nlist,
    index_name: str | None = None,
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.IVF_SQ8,
        metric_type=metric_type,
        index_name=index_name,
        params={"nlist": nlist},
    )


def ivf_pq(
    field_name: str,
    m: int,
    metric_type: MetricType | str = MetricType.L2,
    nlist: int | None = settings.default_nlist,
    nbits: int | None = 8,
    index_name: str | None = None,
) -> IndexDescriptor:
    """IVF with product quantization; ``m`` must divide the vector dimension."""
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.IVF_PQ,
        metric_type=metric_type,
        index_name=index_name,
        params={"nlist": nlist, "m": m, "nbits": nbits},
    )


def hnsw(
    field_name: str,
    metric_type: MetricType | str = MetricType.COSINE,
    m: int | None = 16,
    ef_construction: int | None = 256,
    index_name: str | None = None,
) -> IndexDescriptor:
    """HNSW graph index.

    Example:
        hnsw("embedding", metric_type="IP", m=16, ef_construction=256)
    """
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.HNSW,
        metric_type=metric_type,
        index_name=index_name,
        params={"M": m, "efConstruction": ef_construction},
    )


def autoindex(
    field_name: str, metric_type: MetricType | str = MetricType.COSINE, index_name: str | None = None
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name, index_type=IndexType.AUTOINDEX, metric_type=metric_type, index_name=index_name
    )


def diskann(
    field_name: str, metric_type: MetricType | str = MetricType.L2, index_name: str | None = None
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name, index_type=IndexType.DISKANN, metric_type=metric_type, index_name=index_name
    )


def scann(
    field_name: str,
    metric_type: MetricType | str = MetricType.L2,
    nlist: int | None = settings.default_nlist,
    index_name: str | None = None,
) -> IndexDescriptor:
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.SCANN,
        metric_type=metric_type,
        index_name=index_name,
        params={"nlist": nlist},
    )


def sparse_bm25(
    field_name: str,
    inverted_index_algo: InvertedIndexAlgo | str = InvertedIndexAlgo.DAAT_MAXSCORE,
    bm25_k1: float | None = 1.2,
    bm25_b: float | None = 0.75,
    drop_ratio_build: float | None = 0.2,
    index_name: str | None = None,
) -> IndexDescriptor:
    """Inverted index for the sparse output of a BM25 function.

    ``bm25_k1`` controls term frequency saturation and ``bm25_b`` document
    length normalization. ``drop_ratio_build`` is the share of smallest
    values dropped while building.
    """
    return IndexDescriptor(
        field_name=field_name,
        index_type=IndexType.SPARSE_INVERTED_INDEX,
        metric_type=MetricType.BM25,
        index_name=index_name,
        params={
            "inverted_index_algo": InvertedIndexAlgo(inverted_index_algo).value,
            "bm25_k1": bm25_k1,
            "bm25_b": bm25_b,
            "drop_ratio_build": drop_ratio_build,
        },
    )
