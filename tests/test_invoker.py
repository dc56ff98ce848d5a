"""Tests for rpc.invoker and common.errors."""

from unittest.mock import MagicMock, patch

import grpc
import pytest
from pymilvus.grpc_gen import common_pb2, milvus_pb2

from common.errors import ConnectivityError, IndexReconciliationError, MilvusValidationError
from rpc.invoker import GrpcInvoker, call, check_status, invoke


class _RpcCallError(grpc.RpcError):
    def __init__(self, code: grpc.StatusCode, details: str):
        self._code = code
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._code

    def details(self) -> str:
        return self._details


grpc.Call.register(_RpcCallError)


class TestCheckStatus:
    def test_success(self):
        check_status(common_pb2.Status(code=0), "CreateIndex")
        check_status(milvus_pb2.BoolResponse(status=common_pb2.Status(), value=True), "HasCollection")

    def test_failed_status(self):
        with pytest.raises(ConnectivityError) as exc_info:
            check_status(common_pb2.Status(code=65535, reason="oops"), "CreateCollection")
        assert exc_info.value.operation == "CreateCollection"
        assert exc_info.value.code == 65535
        assert str(exc_info.value) == "CreateCollection failed: oops (code=65535)"

    def test_legacy_error_code(self):
        with pytest.raises(ConnectivityError):
            check_status(common_pb2.Status(error_code=1, reason="unexpected"), "DropIndex")


class TestInvoke:
    def test_leaves_failed_status_alone(self):
        invoker = MagicMock()
        invoker.invoke.return_value = common_pb2.Status(code=700, reason="index not found")
        assert invoke(invoker, "DescribeIndex", "req").code == 700

    def test_wraps_grpc_errors_with_code_name(self):
        invoker = MagicMock()
        invoker.invoke.side_effect = _RpcCallError(grpc.StatusCode.UNAVAILABLE, "connection refused")
        with pytest.raises(ConnectivityError) as exc_info:
            invoke(invoker, "DescribeIndex", "req")
        assert exc_info.value.operation == "DescribeIndex"
        assert exc_info.value.code == "UNAVAILABLE"

    def test_connectivity_error_passes_through(self):
        original = ConnectivityError("HasCollection", "unknown Milvus operation")
        invoker = MagicMock()
        invoker.invoke.side_effect = original
        with pytest.raises(ConnectivityError) as exc_info:
            invoke(invoker, "HasCollection", "req")
        assert exc_info.value is original


class TestCall:
    def test_returns_response(self):
        invoker = MagicMock()
        invoker.invoke.return_value = common_pb2.Status(code=0)
        assert call(invoker, "DropIndex", "req").code == 0
        invoker.invoke.assert_called_once_with("DropIndex", "req")

    def test_wraps_exceptions(self):
        invoker = MagicMock()
        invoker.invoke.side_effect = TimeoutError("deadline exceeded")
        with pytest.raises(ConnectivityError, match="deadline exceeded"):
            call(invoker, "HasCollection", "req")


class TestGrpcInvoker:
    def test_invokes_stub_method_by_name(self):
        with patch("rpc.invoker.grpc.insecure_channel") as channel, patch(
            "rpc.invoker.milvus_pb2_grpc.MilvusServiceStub"
        ) as stub_cls:
            invoker = GrpcInvoker(host="milvus", port=19530, db_name="prod", token="root:Milvus", timeout=5.0)
            invoker.invoke("HasCollection", "req")

        channel.assert_called_once_with("milvus:19530")
        stub_cls.return_value.HasCollection.assert_called_once()
        kwargs = stub_cls.return_value.HasCollection.call_args.kwargs
        assert kwargs["timeout"] == 5.0
        assert ("dbname", "prod") in kwargs["metadata"]
        assert ("authorization", "cm9vdDpNaWx2dXM=") in kwargs["metadata"]

    def test_disconnect(self):
        with patch("rpc.invoker.grpc.insecure_channel") as channel, patch(
            "rpc.invoker.milvus_pb2_grpc.MilvusServiceStub"
        ):
            invoker = GrpcInvoker()
            invoker.connect()
            invoker.disconnect()
        channel.return_value.close.assert_called_once()


class TestErrors:
    def test_validation_error_str(self):
        error = MilvusValidationError("dimension", "must be a multiple of 8 for binary vectors")
        assert str(error) == "Invalid dimension: must be a multiple of 8 for binary vectors"

    def test_reconciliation_error_is_connectivity_error(self):
        error = IndexReconciliationError("embedding", "CreateIndex", "bad params", 5)
        assert isinstance(error, ConnectivityError)
        assert error.details == {"field_name": "embedding"}
