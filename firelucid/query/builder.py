"""
Firelucid 查询构建器

在一个集合（或子集合路径）上按顺序累积约束，执行读取以及分块批量写入。

Example:
    users = await (
        User.query()
        .where('status', '==', 'active')
        .order_by('created_at', 'desc')
        .limit(20)
        .offset(40)
        .preload('posts')
        .get()
    )

    result = await User.query().where_equals('status', 'pending').update({'status': 'active'})
    print(result.count)

批量写入说明：
    存储的单个原子批次最多包含 max_batch_size（默认 500）个操作。
    匹配文档被切分为连续的块，每块一个批次，上一块提交完成后才开始下一块。
    某一块提交失败时异常向上抛出，之前已提交的块不会回滚。
    parallel=True 时每个文档独立写入，既无原子性也无顺序保证。
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Type, TYPE_CHECKING

from .constraints import ASCENDING, DESCENDING, Limit, OrderBy, QueryConstraint, StartAfter, Where
from ..common.exceptions import InvalidOffsetUsageError, NoResultsError, QueryError
from ..common.timestamps import Timestamp
from ..common.utils import chunk
from ..relations.preload import PreloadCallback, PreloadManager

if TYPE_CHECKING:
    from ..backends.base import DocumentSnapshot, DocumentStore
    from ..core.model import Model

logger = logging.getLogger(__name__)

# 批量更新时不可写入的字段
_IMMUTABLE_FIELDS = ('id', 'created_at')


@dataclass
class BatchResult:
    """批量更新结果"""
    count: int


class QueryBuilder:
    """查询构建器"""

    def __init__(self, model_class: Type['Model'], collection_path: Optional[str] = None):
        """
        Args:
            model_class: 结果实体的模型类
            collection_path: 集合路径，默认为模型集合名
        """
        self._model_class = model_class
        self._collection_path = (collection_path or model_class.get_collection_name()).strip('/')
        self._constraints: List[QueryConstraint] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._preload = PreloadManager()

    @property
    def model_class(self) -> Type['Model']:
        return self._model_class

    @property
    def collection_path(self) -> str:
        return self._collection_path

    @property
    def constraints(self) -> List[QueryConstraint]:
        """当前约束的副本（按添加顺序）"""
        return list(self._constraints)

    # ------------------------------------------------------------------
    # 谓词
    # ------------------------------------------------------------------

    def where(self, field: str, operator: str, value: Any) -> 'QueryBuilder':
        """
        添加谓词约束

        Raises:
            QueryError: 未知运算符
        """
        self._constraints.append(Where(field, operator, value))
        return self

    def where_equals(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '==', value)

    def where_not_equals(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '!=', value)

    def where_greater_than(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '>', value)

    def where_greater_than_or_equal(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '>=', value)

    def where_less_than(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '<', value)

    def where_less_than_or_equal(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, '<=', value)

    def where_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self.where(field, 'in', list(values))

    def where_not_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self.where(field, 'not-in', list(values))

    def where_array_contains(self, field: str, value: Any) -> 'QueryBuilder':
        return self.where(field, 'array-contains', value)

    def where_array_contains_any(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self.where(field, 'array-contains-any', list(values))

    # ------------------------------------------------------------------
    # 排序与分页
    # ------------------------------------------------------------------

    def order_by(self, field: str, direction: str = ASCENDING) -> 'QueryBuilder':
        """
        添加排序约束

        Args:
            field: 字段名（'id' 表示文档 id）
            direction: 'asc' 或 'desc'（不区分大小写）
        """
        direction = direction.lower()
        if direction not in (ASCENDING, DESCENDING):
            raise QueryError(f"Invalid order direction: '{direction}'. Use 'asc' or 'desc'")
        self._constraints.append(OrderBy(field, direction))
        return self

    def limit(self, count: int) -> 'QueryBuilder':
        """限制结果数量（多次调用以最后一次为准）"""
        self._constraints.append(Limit(count))
        self._limit = count
        return self

    def offset(self, count: int) -> 'QueryBuilder':
        """
        跳过前 count 条结果

        存储不支持原生 offset：执行时取回 offset + limit 条后在本地切片，
        因此必须先调用 limit()。

        Raises:
            InvalidOffsetUsageError: 尚未调用 limit()
        """
        if self._limit is None:
            raise InvalidOffsetUsageError(count)
        if not isinstance(count, int) or count < 0:
            raise QueryError(f"offset() requires a non-negative integer, got {count!r}")
        self._offset = count
        return self

    def start_after(self, cursor: Any) -> 'QueryBuilder':
        """
        游标分页（需配合 order_by 使用）

        Args:
            cursor: 实体实例、DocumentSnapshot，或与排序字段对应的值序列
        """
        self._constraints.append(StartAfter(cursor))
        return self

    def preload(self, relation: str, callback: Optional[PreloadCallback] = None) -> 'QueryBuilder':
        """
        注册预加载关联，get() 返回前批量解析

        Args:
            relation: 关联名称
            callback: 自定义关联查询，例如 lambda q: q.order_by('name')
        """
        self._preload.register(relation, callback)
        return self

    def clone(self) -> 'QueryBuilder':
        builder = QueryBuilder(self._model_class, self._collection_path)
        builder._constraints = list(self._constraints)
        builder._limit = self._limit
        builder._offset = self._offset
        builder._preload = self._preload.copy()
        return builder

    # ------------------------------------------------------------------
    # 执行
    # ------------------------------------------------------------------

    def _store(self) -> 'DocumentStore':
        return self._model_class.get_store()

    def _effective_constraints(self) -> List[QueryConstraint]:
        """offset 模拟：limit 扩大为 offset + limit"""
        if not self._offset:
            return list(self._constraints)
        return [
            Limit(c.count + self._offset) if isinstance(c, Limit) else c
            for c in self._constraints
        ]

    async def _fetch_documents(self) -> List['DocumentSnapshot']:
        store = self._store()
        query = store.query(store.collection(self._collection_path), self._effective_constraints())
        snapshot = await store.get_documents(query)
        documents = list(snapshot.docs)
        if self._offset:
            end = self._offset + self._limit if self._limit is not None else None
            documents = documents[self._offset:end]
        return documents

    async def get(self) -> List['Model']:
        """执行查询并水合结果；注册了预加载时对整批结果执行一次"""
        documents = await self._fetch_documents()
        models = [
            self._model_class.hydrate(doc.id, doc.data, collection_path=self._collection_path)
            for doc in documents
        ]
        if models and self._preload.has_preloads():
            await self._preload.execute(models)
        return models

    async def first(self) -> Optional['Model']:
        """临时追加 limit(1) 执行 get()，随后恢复原约束"""
        saved_constraints = list(self._constraints)
        saved_limit = self._limit
        try:
            self.limit(1)
            results = await self.get()
        finally:
            self._constraints = saved_constraints
            self._limit = saved_limit
        return results[0] if results else None

    async def first_or_fail(self) -> 'Model':
        """
        Raises:
            NoResultsError: 查询无结果
        """
        result = await self.first()
        if result is None:
            raise NoResultsError(self._collection_path)
        return result

    async def count(self) -> int:
        """取回全部匹配文档后计数（存储没有原生计数）"""
        return len(await self._fetch_documents())

    async def exists(self) -> bool:
        return await self.first() is not None

    async def update(self, data: Dict[str, Any], parallel: bool = False) -> BatchResult:
        """
        更新所有匹配文档

        Args:
            data: 要更新的字段（id / created_at 会被忽略）
            parallel: True 时逐个并发更新，不保证原子性

        Returns:
            BatchResult(count=匹配数)
        """
        documents = await self._fetch_documents()
        if not documents:
            return BatchResult(count=0)

        payload = {k: v for k, v in data.items() if k not in _IMMUTABLE_FIELDS}
        if self._model_class.__timestamps__:
            payload['updated_at'] = Timestamp.now()

        if parallel:
            store = self._store()
            await asyncio.gather(*[
                store.update_document(self._collection_path, doc.id, payload) for doc in documents
            ])
        else:
            await self._execute_batches(documents, 'update', payload)
        return BatchResult(count=len(documents))

    async def delete(self, parallel: bool = False) -> int:
        """
        删除所有匹配文档（不触发实体钩子）

        Returns:
            删除的文档数
        """
        documents = await self._fetch_documents()
        if not documents:
            return 0

        if parallel:
            store = self._store()
            await asyncio.gather(*[
                store.delete_document(self._collection_path, doc.id) for doc in documents
            ])
        else:
            await self._execute_batches(documents, 'delete')
        return len(documents)

    async def _execute_batches(
        self,
        documents: List['DocumentSnapshot'],
        operation: str,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        """每块一个原子批次，按顺序提交；失败时已提交的块保持生效"""
        store = self._store()
        collection = store.collection(self._collection_path)
        chunks = chunk(documents, store.max_batch_size)
        for index, document_chunk in enumerate(chunks, start=1):
            batch = store.batch()
            for doc in document_chunk:
                ref = collection.document(doc.id)
                if operation == 'update':
                    batch.update(ref, data or {})
                else:
                    batch.delete(ref)
            await batch.commit()
            logger.debug(
                "Committed %s batch %d/%d (%d documents) on '%s'",
                operation, index, len(chunks), len(document_chunk), self._collection_path
            )

    def __repr__(self) -> str:
        return (
            f"QueryBuilder(model={self._model_class.__name__}, "
            f"collection='{self._collection_path}', constraints={len(self._constraints)})"
        )
