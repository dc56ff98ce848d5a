"""Request/response call primitive over the Milvus gRPC service."""

import base64
from typing import Any, Protocol

import grpc
from loguru import logger
from pymilvus.grpc_gen import common_pb2, milvus_pb2_grpc

from common.errors import ConnectivityError
from config.settings import settings


class Invoker(Protocol):
    """Anything that can send one named Milvus RPC and return its response."""

    def invoke(self, operation: str, request: Any) -> Any: ...


class GrpcInvoker:
    """Calls ``MilvusService`` methods by name on a plain gRPC channel."""

    def __init__(
        self,
        host: str = settings.milvus_host,
        port: int = settings.milvus_port,
        db_name: str = settings.milvus_database,
        token: str = settings.milvus_token,
        timeout: float = settings.milvus_timeout_seconds,
    ):
        self.host = host
        self.port = port
        self.db_name = db_name
        self.token = token
        self.timeout = timeout
        self._channel: grpc.Channel | None = None
        self._stub: milvus_pb2_grpc.MilvusServiceStub | None = None

    def connect(self) -> None:
        """Open the channel and create the service stub."""
        self._channel = grpc.insecure_channel(f"{self.host}:{self.port}")
        self._stub = milvus_pb2_grpc.MilvusServiceStub(self._channel)
        logger.info(f"Connected to Milvus at {self.host}:{self.port}")

    def disconnect(self) -> None:
        """Close the channel."""
        if self._channel is not None:
            self._channel.close()
        self._channel = None
        self._stub = None

    @property
    def stub(self) -> milvus_pb2_grpc.MilvusServiceStub:
        if self._stub is None:
            self.connect()
        return self._stub

    def invoke(self, operation: str, request: Any) -> Any:
        method = getattr(self.stub, operation, None)
        if method is None:
            raise ConnectivityError(operation, "unknown Milvus operation")
        return method(request, timeout=self.timeout, metadata=self._metadata())

    def _metadata(self) -> list[tuple[str, str]]:
        metadata = [("dbname", self.db_name)]
        if self.token:
            encoded = base64.b64encode(self.token.encode("utf-8")).decode("utf-8")
            metadata.append(("authorization", encoded))
        return metadata


def invoke(invoker: Invoker, operation: str, request: Any) -> Any:
    """Invoke one operation without looking at its status.

    Transport failures surface as :class:`ConnectivityError`.
    """
    try:
        return invoker.invoke(operation, request)
    except ConnectivityError:
        raise
    except grpc.RpcError as exc:
        if isinstance(exc, grpc.Call):
            raise ConnectivityError(operation, exc.details() or str(exc), exc.code().name) from exc
        raise ConnectivityError(operation, str(exc)) from exc
    except Exception as exc:
        raise ConnectivityError(operation, str(exc)) from exc


def call(invoker: Invoker, operation: str, request: Any) -> Any:
    """Invoke one operation and check its status.

    Every failure, transport or server-side, surfaces as
    :class:`ConnectivityError`. Nothing is retried.
    """
    response = invoke(invoker, operation, request)
    check_status(response, operation)
    return response


def check_status(response: Any, operation: str) -> None:
    """Raise :class:`ConnectivityError` if the response carries a failed ``Status``."""
    status = response if isinstance(response, common_pb2.Status) else getattr(response, "status", None)
    if status is None:
        return

    code = status.code or status.error_code
    if code != 0:
        raise ConnectivityError(operation, status.reason or "request failed", code)
