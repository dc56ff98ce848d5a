"""Bring each field's server-side index in line with its IndexDescriptor.

Per field: no index yet creates one, a matching index is left alone, and a
differing index is dropped and recreated. There is no transaction across
those steps; migrations of one collection must not run concurrently.
"""

import json
from enum import Enum

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import common_pb2, milvus_pb2

from common.errors import ConnectivityError, IndexReconciliationError
from migration.index import TYPE_PARAMS, IndexDescriptor, IndexType
from rpc.invoker import Invoker, call, check_status, invoke

# Server status for a field without an index
INDEX_NOT_FOUND_CODE = 700
INDEX_NOT_EXIST_ERROR_CODE = 25


class IndexAction(str, Enum):
    CREATED = "created"
    UNCHANGED = "unchanged"
    RECREATED = "recreated"


class CurrentIndex(BaseModel):
    """An index as the server reports it."""

    model_config = ConfigDict(frozen=True)

    index_name: str
    params: dict[str, str]


def describe_index(
    invoker: Invoker, collection_name: str, field_name: str, db_name: str = ""
) -> CurrentIndex | None:
    """Current index on a field, or None when it has no index.

    A JSON ``params`` entry is merged into the flat parameter map.
    """
    request = milvus_pb2.DescribeIndexRequest(
        db_name=db_name, collection_name=collection_name, field_name=field_name
    )
    response = invoke(invoker, "DescribeIndex", request)

    if _is_not_found(response.status):
        return None
    check_status(response, "DescribeIndex")

    descriptions = [d for d in response.index_descriptions if d.field_name == field_name]
    if not descriptions:
        return None
    return CurrentIndex(index_name=descriptions[0].index_name, params=flatten_params(descriptions[0].params))


def flatten_params(pairs) -> dict[str, str]:
    params = {}
    for pair in pairs:
        if pair.key == "params":
            params.update({k: str(v) for k, v in json.loads(pair.value or "{}").items()})
        else:
            params[pair.key] = pair.value
    return params


def needs_recreate(desired: IndexDescriptor, current: dict[str, str]) -> bool:
    """True when the current index differs from the desired one.

    Index and metric types compare case-insensitively. Only the numeric
    params of the desired index type are checked, and only when set on the
    desired side and reported by the server.
    """
    if current.get("index_type", "").upper() != desired.index_type.value.upper():
        return True
    if current.get("metric_type", "").upper() != desired.metric_type.value.upper():
        return True

    for key in TYPE_PARAMS.get(IndexType(desired.index_type), ()):
        wanted = desired.params.get(key)
        reported = current.get(key)
        if wanted is None or reported is None:
            continue
        if not _same_number(wanted, reported):
            return True
    return False


def reconcile_index(
    invoker: Invoker, collection_name: str, desired: IndexDescriptor, db_name: str = ""
) -> IndexAction:
    field_name = desired.field_name
    try:
        current = describe_index(invoker, collection_name, field_name, db_name)

        if current is None:
            _create(invoker, collection_name, desired, db_name)
            logger.info(f"Created {desired.index_type.value} index on {collection_name}.{field_name}")
            return IndexAction.CREATED

        if not needs_recreate(desired, current.params):
            logger.debug(f"Index on {collection_name}.{field_name} is up to date")
            return IndexAction.UNCHANGED

        call(
            invoker,
            "DropIndex",
            milvus_pb2.DropIndexRequest(
                db_name=db_name,
                collection_name=collection_name,
                field_name=field_name,
                index_name=current.index_name,
            ),
        )
        _create(invoker, collection_name, desired, db_name)
        logger.info(f"Recreated {desired.index_type.value} index on {collection_name}.{field_name}")
        return IndexAction.RECREATED

    except IndexReconciliationError:
        raise
    except ConnectivityError as exc:
        raise IndexReconciliationError(field_name, exc.operation, exc.message, exc.code) from exc


def reconcile_indexes(
    invoker: Invoker,
    collection_name: str,
    indexes: list[IndexDescriptor],
    db_name: str = "",
) -> dict[str, IndexAction]:
    """Reconcile every descriptor independently.

    A failing field does not stop the others; once all have been attempted
    the first failure is raised.
    """
    actions = {}
    errors = []
    for desired in indexes:
        try:
            actions[desired.field_name] = reconcile_index(invoker, collection_name, desired, db_name)
        except IndexReconciliationError as exc:
            logger.error(f"Index reconciliation failed for {collection_name}.{desired.field_name}: {exc}")
            errors.append(exc)

    if errors:
        raise errors[0]
    return actions


def _create(invoker: Invoker, collection_name: str, desired: IndexDescriptor, db_name: str) -> None:
    call(invoker, "CreateIndex", desired.create_index_request(collection_name, db_name))


def _is_not_found(status: common_pb2.Status) -> bool:
    if status.code == INDEX_NOT_FOUND_CODE or status.error_code == INDEX_NOT_EXIST_ERROR_CODE:
        return True
    return "index not found" in status.reason.lower()


def _same_number(wanted, reported: str) -> bool:
    try:
        return int(wanted) == int(float(reported))
    except (TypeError, ValueError):
        return str(wanted) == str(reported)
