"""
Firelucid Firestore 存储引擎

将 google-cloud-firestore 的 AsyncClient 适配为 DocumentStore 契约
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .base import DocumentStore, DocumentRef, DocumentSnapshot, QueryRef, QuerySnapshot, WriteBatch
from ..common.exceptions import ConfigurationError, DocumentNotFoundError, QueryError
from ..common.options import FirestoreBackendOptions
from ..common.timestamps import Timestamp
from ..query.constraints import DOCUMENT_ID, Limit, OrderBy, StartAfter, Where

if TYPE_CHECKING:
    from google.cloud.firestore import AsyncClient


# 约束运算符到 SDK 运算符的映射
_OPERATOR_MAP: Dict[str, str] = {
    '==': '==',
    '!=': '!=',
    '<': '<',
    '<=': '<=',
    '>': '>',
    '>=': '>=',
    'in': 'in',
    'not-in': 'not-in',
    'array-contains': 'array_contains',
    'array-contains-any': 'array_contains_any',
}


def to_store_value(value: Any) -> Any:
    """Timestamp -> datetime（递归处理 dict / list）"""
    if isinstance(value, Timestamp):
        return value.to_datetime()
    if isinstance(value, dict):
        return {k: to_store_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_store_value(v) for v in value]
    return value


def from_store_value(value: Any) -> Any:
    """SDK 返回的 datetime -> Timestamp（递归处理 dict / list）"""
    if isinstance(value, datetime):
        return Timestamp.from_datetime(value)
    if isinstance(value, dict):
        return {k: from_store_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_store_value(v) for v in value]
    return value


class FirestoreWriteBatch(WriteBatch):
    """Firestore 原子批次适配器"""

    def __init__(self, store: 'FirestoreStore'):
        self._store = store
        self._batch = store.client.batch()

    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> 'FirestoreWriteBatch':
        self._batch.update(self._store._document(ref.collection, ref.id), to_store_value(data))
        return self

    def delete(self, ref: DocumentRef) -> 'FirestoreWriteBatch':
        self._batch.delete(self._store._document(ref.collection, ref.id))
        return self

    async def commit(self) -> None:
        await self._batch.commit()


class FirestoreStore(DocumentStore):
    """Cloud Firestore storage engine (requires google-cloud-firestore)"""

    ENGINE_NAME = 'firestore'
    REQUIRED_DEPENDENCIES = ['google.cloud.firestore']

    def __init__(
        self,
        options: Optional[FirestoreBackendOptions] = None,
        client: Optional['AsyncClient'] = None
    ):
        """
        初始化 Firestore 后端

        Args:
            options: Firestore 后端配置选项
            client: 已创建的 AsyncClient（传入时忽略 project / credentials）
        """
        options = options or FirestoreBackendOptions()
        assert isinstance(options, FirestoreBackendOptions), "options must be an instance of FirestoreBackendOptions"
        super().__init__(options)
        self.options: FirestoreBackendOptions = options
        try:
            from google.cloud import firestore
            from google.cloud.firestore_v1.base_query import FieldFilter
        except ImportError:
            raise ConfigurationError(
                "google-cloud-firestore is required for Firestore backend. "
                "Install with: pip install firelucid[firestore]"
            )
        self._firestore = firestore
        self._field_filter = FieldFilter

        if client is None:
            kwargs: Dict[str, Any] = {}
            if options.project:
                kwargs['project'] = options.project
            if options.database:
                kwargs['database'] = options.database
            if options.credentials is not None:
                kwargs['credentials'] = options.credentials
            client = firestore.AsyncClient(**kwargs)
        self.client = client

    def _document(self, collection: str, document_id: str) -> Any:
        return self.client.collection(collection).document(document_id)

    async def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._document(collection, document_id).get()
        if not snapshot.exists:
            return None
        return from_store_value(snapshot.to_dict() or {})

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        _, doc_ref = await self.client.collection(collection).add(to_store_value(data))
        return doc_ref.id

    async def set_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        await self._document(collection, document_id).set(to_store_value(data))

    async def update_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        from google.api_core.exceptions import NotFound
        try:
            await self._document(collection, document_id).update(to_store_value(data))
        except NotFound:
            raise DocumentNotFoundError(collection, document_id)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._document(collection, document_id).delete()

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self)

    async def get_documents(self, query: QueryRef) -> QuerySnapshot:
        path = query.collection.path
        sdk_query = await self.build_query(query)
        snapshots = await sdk_query.get()
        return QuerySnapshot([
            DocumentSnapshot(snap.id, from_store_value(snap.to_dict() or {}), DocumentRef(path, snap.id))
            for snap in snapshots
        ])

    async def build_query(self, query: QueryRef) -> Any:
        """
        将约束按顺序翻译为 SDK 查询

        'id' 字段映射为文档 id 字段路径，其值转换为文档引用。
        """
        path = query.collection.path
        collection = self.client.collection(path)
        sdk_query: Any = collection
        for constraint in query.constraints:
            if isinstance(constraint, Where):
                sdk_query = sdk_query.where(filter=self._translate_where(path, constraint))
            elif isinstance(constraint, OrderBy):
                direction = (
                    self._firestore.Query.DESCENDING if constraint.descending
                    else self._firestore.Query.ASCENDING
                )
                sdk_query = sdk_query.order_by(self._field_path(constraint.field), direction=direction)
            elif isinstance(constraint, Limit):
                sdk_query = sdk_query.limit(constraint.count)
            elif isinstance(constraint, StartAfter):
                sdk_query = sdk_query.start_after(await self._translate_cursor(path, constraint.cursor))
            else:
                raise QueryError(f"Unsupported constraint: {constraint!r}")
        return sdk_query

    def _field_path(self, field: str) -> str:
        if field == DOCUMENT_ID:
            from google.cloud.firestore_v1.field_path import FieldPath
            return FieldPath.document_id()
        return field

    def _translate_where(self, path: str, where: Where) -> Any:
        value = to_store_value(where.value)
        if where.field == DOCUMENT_ID:
            if isinstance(value, list):
                value = [self._document(path, str(v)) for v in value]
            else:
                value = self._document(path, str(value))
        return self._field_filter(self._field_path(where.field), _OPERATOR_MAP[where.operator], value)

    async def _translate_cursor(self, path: str, cursor: Any) -> Any:
        if isinstance(cursor, DocumentSnapshot):
            return await self._document(cursor.reference.collection, cursor.id).get()
        if hasattr(cursor, 'to_dict') and hasattr(cursor, 'id'):
            return await self._document(path, cursor.id).get()
        if isinstance(cursor, (list, tuple)):
            return [to_store_value(v) for v in cursor]
        return [to_store_value(cursor)]

    async def close(self) -> None:
        self.client.close()
