"""
ManyToMany: 通过 pivot 集合连接两个模型

pivot 文档结构: {foreign_key: 当前模型键, related_key: 目标模型键, created_at, ...额外字段}
"""

import asyncio
import copy
from typing import Any, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

from .base import BoundRelation, RelatedTarget, RelationConfig, RelationDescriptor, RelationVariant
from ..common.exceptions import MissingIdentifierError, MissingRelationConfigError, UnsupportedOperationError
from ..common.timestamps import Timestamp
from ..common.utils import chunk, is_blank, unique
from ..query.constraints import QueryConstraint, Where

if TYPE_CHECKING:
    from ..backends.base import DocumentStore
    from ..core.model import Model
    from ..query.builder import QueryBuilder


# pivot_rows() 不按目标 id 过滤
_ANY_RELATED = object()


async def fetch_pivot_rows(
    store: 'DocumentStore',
    pivot_collection: str,
    constraints: Sequence[QueryConstraint]
) -> List[Dict[str, Any]]:
    """查询 pivot 集合，返回 [{'id': 文档 id, **字段}]"""
    query = store.query(store.collection(pivot_collection), list(constraints))
    snapshot = await store.get_documents(query)
    return [{**doc.data, 'id': doc.id} for doc in snapshot.docs]


def with_pivot(entity: 'Model', row: Dict[str, Any], fields: Iterable[str]) -> 'Model':
    """返回附带 pivot 数据的实体副本"""
    clone = copy.copy(entity)
    clone._pivot = {name: row.get(name) for name in fields}
    return clone


class ManyToMany(RelationDescriptor):
    """
    多对多关联（pivot 集合）

    Example:
        class User(Base):
            roles = ManyToMany(
                'Role',
                pivot_collection='user_roles',
                foreign_key='user_id',
                related_key='role_id',
                pivot_fields=('granted_by',),
            )

        await user.related('roles').attach(role.id, {'granted_by': 'admin'})
    """

    relation_type = 'ManyToMany'
    many = True

    def __init__(
        self,
        related: RelatedTarget,
        pivot_collection: str,
        foreign_key: str,
        related_key: str,
        local_key: str = 'id',
        related_local_key: str = 'id',
        pivot_fields: Sequence[str] = ()
    ):
        for field_name, value in (
            ('pivot_collection', pivot_collection),
            ('foreign_key', foreign_key),
            ('related_key', related_key),
        ):
            if not value:
                raise MissingRelationConfigError(self.relation_type, field_name)
        super().__init__(related, RelationConfig(
            variant=RelationVariant.TO_MANY_BY_PIVOT,
            foreign_key=foreign_key,
            local_key=local_key,
            pivot_collection=pivot_collection,
            related_key=related_key,
            related_local_key=related_local_key,
            pivot_fields=tuple(pivot_fields),
        ))

    def bind(self, parent: 'Model') -> 'BoundManyToMany':
        return BoundManyToMany(parent, self)


class BoundManyToMany(BoundRelation):

    @property
    def store(self) -> 'DocumentStore':
        return type(self.parent).get_store()

    def _require_local_key(self, operation: str) -> Any:
        value = self.local_key_value()
        if is_blank(value):
            raise MissingIdentifierError(type(self.parent).__name__, operation)
        return value

    async def pivot_rows(self, related_id: Any = _ANY_RELATED) -> List[Dict[str, Any]]:
        """当前实例的 pivot 行；传入 related_id（包括 None）时按目标 id 过滤"""
        constraints: List[QueryConstraint] = [
            Where(self.config.foreign_key, '==', self.local_key_value()),
        ]
        if related_id is not _ANY_RELATED:
            constraints.append(Where(self.config.related_key, '==', related_id))
        return await fetch_pivot_rows(self.store, self.config.pivot_collection, constraints)

    async def related_ids(self) -> List[Any]:
        """已关联的目标 id（去重，保持 pivot 顺序）"""
        if is_blank(self.local_key_value()):
            return []
        rows = await self.pivot_rows()
        return unique([row.get(self.config.related_key) for row in rows
                       if not is_blank(row.get(self.config.related_key))])

    async def get(self) -> List['Model']:
        if is_blank(self.local_key_value()):
            return []
        rows = await self.pivot_rows()
        if not rows:
            return []

        related_key = self.config.related_key
        ids = unique([row.get(related_key) for row in rows if not is_blank(row.get(related_key))])

        results: List['Model'] = []
        for id_chunk in chunk(ids, self.related_model.get_store().max_in_values):
            results.extend(
                await self.related_model.query().where_in(self.config.related_local_key, id_chunk).get()
            )

        if self.config.pivot_fields:
            # 同一目标有多行 pivot 时以最后一行为准
            rows_by_related = {row.get(related_key): row for row in rows}
            results = [
                with_pivot(
                    entity,
                    rows_by_related[getattr(entity, self.config.related_local_key, None)],
                    self.config.pivot_fields,
                )
                if getattr(entity, self.config.related_local_key, None) in rows_by_related else entity
                for entity in results
            ]
        return results

    def query(self) -> 'QueryBuilder':
        raise UnsupportedOperationError(
            "ManyToMany relations cannot be queried directly; use get() or preload()"
        )

    async def attach(self, related_id: Any, extra: Optional[Dict[str, Any]] = None) -> str:
        """
        新增一行 pivot

        Returns:
            新 pivot 文档 id
        """
        local = self._require_local_key('attach to')
        data: Dict[str, Any] = {
            self.config.foreign_key: local,
            self.config.related_key: related_id,
            'created_at': Timestamp.now(),
        }
        if extra:
            data.update(extra)
        return await self.store.add_document(self.config.pivot_collection, data)

    async def detach(self, related_id: Any) -> int:
        """
        删除与 related_id 匹配的所有 pivot 行

        Returns:
            删除的行数（没有匹配时为 0）
        """
        self._require_local_key('detach from')
        rows = await self.pivot_rows(related_id)
        if not rows:
            return 0
        await asyncio.gather(*[
            self.store.delete_document(self.config.pivot_collection, row['id']) for row in rows
        ])
        return len(rows)

    async def sync(
        self,
        related_ids: Iterable[Any],
        extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, List[Any]]:
        """
        使关联集合恰好等于 related_ids

        Returns:
            {'attached': [...], 'detached': [...]}
        """
        self._require_local_key('sync')
        desired = unique([value for value in related_ids if not is_blank(value)])
        current = await self.related_ids()

        to_attach = [value for value in desired if value not in current]
        to_detach = [value for value in current if value not in desired]

        await asyncio.gather(
            *[self.attach(value, extra) for value in to_attach],
            *[self.detach(value) for value in to_detach],
        )
        return {'attached': to_attach, 'detached': to_detach}

    async def toggle(self, related_id: Any, extra: Optional[Dict[str, Any]] = None) -> bool:
        """
        已关联则解除，否则关联

        Returns:
            操作后的关联状态
        """
        self._require_local_key('toggle')
        if await self.pivot_rows(related_id):
            await self.detach(related_id)
            return False
        await self.attach(related_id, extra)
        return True
