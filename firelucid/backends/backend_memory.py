"""
Firelucid 内存存储引擎

进程内的完整文档存储实现：支持全部谓词运算符、多字段排序、
数量限制、游标分页以及原子写批次。适用于测试和嵌入式场景。
"""

import asyncio
import copy
import functools
import secrets
import string
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import DocumentStore, DocumentRef, DocumentSnapshot, QueryRef, QuerySnapshot, WriteBatch
from ..common.exceptions import (
    BatchLimitExceededError,
    DocumentNotFoundError,
    QueryError,
    UnsupportedOperationError,
)
from ..common.options import MemoryBackendOptions
from ..common.timestamps import Timestamp
from ..query.constraints import (
    LIST_OPERATORS,
    Limit,
    OrderBy,
    StartAfter,
    Where,
    normalize,
    resolve_field,
    _MISSING,
)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20


def generate_id() -> str:
    """生成 20 位字母数字文档 id"""
    return ''.join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))


def _type_rank(value: Any) -> int:
    """跨类型排序的类型优先级：null < bool < number < timestamp < string < bytes < array < map"""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, Timestamp):
        return 3
    if isinstance(value, str):
        return 4
    if isinstance(value, bytes):
        return 5
    if isinstance(value, list):
        return 6
    return 7


def _sort_key(value: Any) -> Tuple[int, Any]:
    value = normalize(value)
    rank = _type_rank(value)
    if rank == 6:
        return rank, [_sort_key(item) for item in value]
    if rank == 7:
        return rank, str(value)
    return rank, value


def _compare_keys(left: Sequence[Any], right: Sequence[Any], descending: Sequence[bool]) -> int:
    """按排序字段逐个比较，返回 -1 / 0 / 1（只比较两边都有的前缀）"""
    for index, (a, b) in enumerate(zip(left, right)):
        ka, kb = _sort_key(a), _sort_key(b)
        if ka == kb:
            continue
        result = -1 if ka < kb else 1
        return -result if descending[index] else result
    return 0


class MemoryWriteBatch(WriteBatch):
    """内存原子批次：提交前整体校验，全部成功或全部不生效"""

    def __init__(self, store: 'MemoryStore'):
        self._store = store
        self._operations: List[Tuple[str, DocumentRef, Optional[Dict[str, Any]]]] = []
        self._committed = False

    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> 'MemoryWriteBatch':
        self._operations.append(('update', ref, copy.deepcopy(data)))
        return self

    def delete(self, ref: DocumentRef) -> 'MemoryWriteBatch':
        self._operations.append(('delete', ref, None))
        return self

    def __len__(self) -> int:
        return len(self._operations)

    async def commit(self) -> None:
        if self._committed:
            raise UnsupportedOperationError("Write batch has already been committed")
        if len(self._operations) > self._store.max_batch_size:
            raise BatchLimitExceededError(self._store.max_batch_size)

        await asyncio.sleep(0)

        # 校验：模拟执行顺序检查每个 update 的目标是否存在
        existing: Dict[Tuple[str, str], bool] = {}
        for op, ref, _ in self._operations:
            key = (ref.collection, ref.id)
            if key not in existing:
                existing[key] = ref.id in self._store._collections.get(ref.collection, {})
            if op == 'update' and not existing[key]:
                raise DocumentNotFoundError(ref.collection, ref.id)
            if op == 'delete':
                existing[key] = False

        # 应用（校验与应用之间没有挂起点）
        for op, ref, data in self._operations:
            if op == 'update':
                assert data is not None
                self._store._apply_update(ref.collection, ref.id, data)
            else:
                self._store._collections.get(ref.collection, {}).pop(ref.id, None)
        self._committed = True


class MemoryStore(DocumentStore):
    """In-memory document store (no dependencies)"""

    ENGINE_NAME = 'memory'
    REQUIRED_DEPENDENCIES: List[str] = []

    def __init__(self, options: Optional[MemoryBackendOptions] = None):
        """
        初始化内存存储

        Args:
            options: 内存后端配置选项
        """
        options = options or MemoryBackendOptions()
        assert isinstance(options, MemoryBackendOptions), "options must be an instance of MemoryBackendOptions"
        super().__init__(options)
        self.options: MemoryBackendOptions = options
        # {collection_path: {document_id: data}}
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    # ------------------------------------------------------------------
    # 单文档操作
    # ------------------------------------------------------------------

    async def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        record = self._collections.get(collection, {}).get(document_id)
        return copy.deepcopy(record) if record is not None else None

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        await asyncio.sleep(0)
        documents = self._collections.setdefault(collection, {})
        document_id = generate_id()
        while document_id in documents:
            document_id = generate_id()
        documents[document_id] = copy.deepcopy(data)
        return document_id

    async def set_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._collections.setdefault(collection, {})[document_id] = copy.deepcopy(data)

    async def update_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        if document_id not in self._collections.get(collection, {}):
            raise DocumentNotFoundError(collection, document_id)
        self._apply_update(collection, document_id, copy.deepcopy(data))

    async def delete_document(self, collection: str, document_id: str) -> None:
        await asyncio.sleep(0)
        self._collections.get(collection, {}).pop(document_id, None)

    def batch(self) -> MemoryWriteBatch:
        return MemoryWriteBatch(self)

    def _apply_update(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """合并更新字段，支持点号路径"""
        record = self._collections[collection][document_id]
        for key, value in data.items():
            target = record
            parts = key.split('.')
            for part in parts[:-1]:
                child = target.get(part)
                if not isinstance(child, dict):
                    child = {}
                    target[part] = child
                target = child
            target[parts[-1]] = value

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    async def get_documents(self, query: QueryRef) -> QuerySnapshot:
        """
        执行查询

        约束按添加顺序收集：所有 Where 共同过滤；OrderBy 依次作为排序键；
        Limit / StartAfter 以最后一个为准。未指定排序时按文档 id 升序。

        Raises:
            QueryError: 列表运算符的值数量超过 max_in_values
        """
        await asyncio.sleep(0)
        path = query.collection.path

        wheres: List[Where] = []
        orders: List[OrderBy] = []
        limit: Optional[int] = None
        cursor: Any = _MISSING
        for constraint in query.constraints:
            if isinstance(constraint, Where):
                self._check_list_size(constraint)
                wheres.append(constraint)
            elif isinstance(constraint, OrderBy):
                orders.append(constraint)
            elif isinstance(constraint, Limit):
                limit = constraint.count
            elif isinstance(constraint, StartAfter):
                cursor = constraint.cursor
            else:
                raise QueryError(f"Unsupported constraint: {constraint!r}")

        documents = self._collections.get(path, {})
        matched = [
            (doc_id, data) for doc_id, data in documents.items()
            if all(where.evaluate(data, doc_id) for where in wheres)
        ]

        # 排序字段缺失的文档不出现在结果中
        for order in orders:
            matched = [
                (doc_id, data) for doc_id, data in matched
                if resolve_field(data, order.field, doc_id) is not _MISSING
            ]

        fields = [order.field for order in orders] + ['id']
        descending = [order.descending for order in orders] + [False]

        def values_of(item: Tuple[str, Dict[str, Any]]) -> List[Any]:
            doc_id, data = item
            return [resolve_field(data, f, doc_id) for f in fields]

        matched.sort(key=functools.cmp_to_key(
            lambda a, b: _compare_keys(values_of(a), values_of(b), descending)
        ))

        if cursor is not _MISSING:
            cursor_values = self._cursor_values(cursor, fields)
            matched = [
                item for item in matched
                if _compare_keys(values_of(item), cursor_values, descending) > 0
            ]

        if limit is not None:
            matched = matched[:limit]

        return QuerySnapshot([
            DocumentSnapshot(doc_id, copy.deepcopy(data), DocumentRef(path, doc_id))
            for doc_id, data in matched
        ])

    def _check_list_size(self, where: Where) -> None:
        if where.operator in LIST_OPERATORS and len(where.value) > self.max_in_values:
            raise QueryError(
                f"'{where.operator}' filters support at most {self.max_in_values} values, "
                f"got {len(where.value)}"
            )

    @staticmethod
    def _cursor_values(cursor: Any, fields: List[str]) -> List[Any]:
        """将游标转换为排序字段值列表"""
        if isinstance(cursor, DocumentSnapshot):
            return [resolve_field(cursor.data, f, cursor.id) for f in fields]
        if hasattr(cursor, 'to_dict') and hasattr(cursor, 'id'):
            data = cursor.to_dict()
            return [resolve_field(data, f, cursor.id) for f in fields]
        if isinstance(cursor, (list, tuple)):
            return list(cursor)
        return [cursor]

    # ------------------------------------------------------------------
    # 检查工具
    # ------------------------------------------------------------------

    def get_collection_data(self, path: str) -> Dict[str, Dict[str, Any]]:
        """返回集合所有文档的副本 {document_id: data}"""
        return copy.deepcopy(self._collections.get(path.strip('/'), {}))

    def clear(self) -> None:
        """清空所有集合"""
        self._collections.clear()
