"""Create or verify a collection, then reconcile its indexes."""

from loguru import logger
from pydantic import BaseModel, ConfigDict
from pymilvus.grpc_gen import milvus_pb2

from collection_schema.schema import CollectionSchema
from config.settings import settings
from migration.index import IndexDescriptor
from migration.index_reconciler import IndexAction, reconcile_indexes
from migration.schema_diff import SchemaDiff, verify_schema
from rpc.invoker import Invoker, call


class MigrationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection_name: str
    created: bool
    diff: SchemaDiff | None = None
    index_actions: dict[str, IndexAction] = {}


def collection_exists(invoker: Invoker, collection_name: str, db_name: str = "") -> bool:
    request = milvus_pb2.HasCollectionRequest(db_name=db_name, collection_name=collection_name)
    return call(invoker, "HasCollection", request).value


def create_collection(invoker: Invoker, schema: CollectionSchema, db_name: str = "") -> None:
    request = milvus_pb2.CreateCollectionRequest(
        db_name=db_name,
        collection_name=schema.name,
        schema=schema.to_wire().SerializeToString(),
    )
    call(invoker, "CreateCollection", request)
    logger.info(f"Created collection: {schema.name}")


def migrate(
    invoker: Invoker,
    schema: CollectionSchema,
    indexes: list[IndexDescriptor] | None = None,
    strict: bool | None = None,
    db_name: str = settings.milvus_database,
) -> MigrationResult:
    """Make the server match ``schema`` and ``indexes`` as far as is safe.

    A missing collection is created. An existing one is compared and its
    drift reported (or raised in strict mode), never altered. Indexes are
    then reconciled field by field.
    """
    strict = settings.strict_migration if strict is None else strict
    schema = schema.validate()
    indexes = [index.validate() for index in indexes or []]

    diff = None
    created = False
    if collection_exists(invoker, schema.name, db_name):
        logger.info(f"Using existing collection: {schema.name}")
        diff = verify_schema(invoker, schema, strict, db_name)
    else:
        create_collection(invoker, schema, db_name)
        created = True

    actions = reconcile_indexes(invoker, schema.name, indexes, db_name)
    return MigrationResult(collection_name=schema.name, created=created, diff=diff, index_actions=actions)
