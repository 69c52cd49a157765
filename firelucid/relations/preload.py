"""
Firelucid 关联预加载

按关联类型标签批量解析关联，避免逐实例查询（N+1）。

两种使用方式：

1. 查询构建器（get() 返回前自动执行）：
    users = await User.query().preload('posts').preload(
        'roles', lambda q: q.order_by('name')
    ).get()

2. 独立函数（对已获取的实例列表批量预加载）：
    from firelucid import preload

    users = await User.all()
    await preload(users, 'posts', 'profile')
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING

from .base import RelationDescriptor, RelationVariant
from .belongs_to_many import array_values
from .many_to_many import fetch_pivot_rows, with_pivot
from ..common.exceptions import UnsupportedRelationVariantError
from ..common.utils import chunk, group_by, is_blank, unique
from ..query.constraints import Where

if TYPE_CHECKING:
    from ..core.model import Model
    from ..query.builder import QueryBuilder

logger = logging.getLogger(__name__)

# 自定义回调：原地修改构建器，或返回新的构建器
PreloadCallback = Callable[['QueryBuilder'], Optional['QueryBuilder']]


@dataclass
class PreloadRequest:
    """一次预加载请求"""
    relation: str
    callback: Optional[PreloadCallback] = None


class PreloadManager:
    """
    预加载管理器

    每个 QueryBuilder 持有一个实例；execute() 对整批结果逐个关联解析。
    """

    def __init__(self) -> None:
        self._requests: List[PreloadRequest] = []

    @classmethod
    def for_relations(cls, names: Sequence[str]) -> 'PreloadManager':
        manager = cls()
        for name in names:
            manager.register(name)
        return manager

    def register(self, relation: str, callback: Optional[PreloadCallback] = None) -> None:
        if not isinstance(relation, str):
            raise TypeError(f"Relation name must be str, got {type(relation).__name__}")
        self._requests.append(PreloadRequest(relation, callback))

    def has_preloads(self) -> bool:
        return bool(self._requests)

    @property
    def relations(self) -> List[str]:
        return [request.relation for request in self._requests]

    def copy(self) -> 'PreloadManager':
        manager = PreloadManager()
        manager._requests = list(self._requests)
        return manager

    async def execute(self, models: Sequence['Model']) -> None:
        """
        对同一模型类的实例列表解析全部已注册的关联

        Raises:
            UnknownRelationError: 模型没有该关联
            UnsupportedRelationVariantError: 无法识别的关联类型
        """
        if not models or not self._requests:
            return
        owner_class = type(models[0])
        for request in self._requests:
            descriptor = owner_class.get_relation(request.relation)
            await self.load_relation(models, descriptor, request.callback)

    async def load_relation(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback] = None
    ) -> None:
        loader = self._loaders().get(descriptor.variant)
        if loader is None:
            raise UnsupportedRelationVariantError(descriptor.variant)
        logger.debug(
            "Preloading %s.%s (%s) for %d instance(s)",
            type(models[0]).__name__, descriptor.name, descriptor.variant.value, len(models)
        )
        await loader(models, descriptor, callback)

    def _loaders(self) -> Dict[Any, Callable[..., Awaitable[None]]]:
        return {
            RelationVariant.TO_ONE_BY_FOREIGN_KEY: self._load_to_one,
            RelationVariant.TO_MANY_BY_FOREIGN_KEY: self._load_to_many_by_foreign_key,
            RelationVariant.TO_MANY_SUBCOLLECTION: self._load_subcollection,
            RelationVariant.TO_MANY_BY_PIVOT: self._load_pivot,
            RelationVariant.TO_MANY_BY_ARRAY_FOREIGN_KEY: self._load_array_foreign_key,
        }

    # ------------------------------------------------------------------
    # 工具
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_callback(builder: 'QueryBuilder', callback: Optional[PreloadCallback]) -> 'QueryBuilder':
        if callback is None:
            return builder
        result = callback(builder)
        return result if result is not None else builder

    async def _fetch_in_chunks(
        self,
        descriptor: RelationDescriptor,
        field: str,
        values: List[Any],
        callback: Optional[PreloadCallback]
    ) -> List['Model']:
        """按 'in' 上限分块查询目标集合，每块都应用回调"""
        related_model = descriptor.resolve_related()
        results: List['Model'] = []
        for value_chunk in chunk(values, related_model.get_store().max_in_values):
            builder = self._apply_callback(related_model.query().where_in(field, value_chunk), callback)
            results.extend(await builder.get())
        return results

    @staticmethod
    def _assign_all(models: Sequence['Model'], name: str, value_factory: Callable[[], Any]) -> None:
        for model in models:
            model.set_relation(name, value_factory())

    # ------------------------------------------------------------------
    # 各关联类型
    # ------------------------------------------------------------------

    async def _load_to_one(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback]
    ) -> None:
        config = descriptor.config
        name = descriptor.name
        values = unique([
            getattr(m, config.foreign_key, None) for m in models
            if not is_blank(getattr(m, config.foreign_key, None))
        ])
        if not values:
            self._assign_all(models, name, descriptor.empty_value)
            return

        related = await self._fetch_in_chunks(descriptor, config.owner_key, values, callback)
        index = {getattr(entity, config.owner_key, None): entity for entity in related}
        for model in models:
            key = getattr(model, config.foreign_key, None)
            model.set_relation(name, None if is_blank(key) else index.get(key))

    async def _load_to_many_by_foreign_key(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback]
    ) -> None:
        config = descriptor.config
        name = descriptor.name
        values = unique([
            getattr(m, config.local_key, None) for m in models
            if not is_blank(getattr(m, config.local_key, None))
        ])
        if not values:
            self._assign_all(models, name, descriptor.empty_value)
            return

        related = await self._fetch_in_chunks(descriptor, config.foreign_key, values, callback)
        grouped = group_by(related, config.foreign_key)
        for model in models:
            model.set_relation(name, list(grouped.get(getattr(model, config.local_key, None), [])))

    async def _load_subcollection(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback]
    ) -> None:
        # 每个父文档的子集合路径独立，只能逐个并发查询
        name = descriptor.name

        async def load_one(model: 'Model') -> List['Model']:
            bound = descriptor.bind(model)
            if is_blank(bound.local_key_value()):
                return []
            return await self._apply_callback(bound.query(), callback).get()

        results = await asyncio.gather(*[load_one(model) for model in models])
        for model, value in zip(models, results):
            model.set_relation(name, value)

    async def _load_pivot(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback]
    ) -> None:
        config = descriptor.config
        name = descriptor.name
        values = unique([
            getattr(m, config.local_key, None) for m in models
            if not is_blank(getattr(m, config.local_key, None))
        ])
        if not values:
            self._assign_all(models, name, descriptor.empty_value)
            return

        store = type(models[0]).get_store()
        pivot_rows: List[Dict[str, Any]] = []
        for value_chunk in chunk(values, store.max_in_values):
            pivot_rows.extend(await fetch_pivot_rows(
                store, config.pivot_collection, [Where(config.foreign_key, 'in', value_chunk)]
            ))
        if not pivot_rows:
            self._assign_all(models, name, descriptor.empty_value)
            return

        related_ids = unique([
            row.get(config.related_key) for row in pivot_rows
            if not is_blank(row.get(config.related_key))
        ])
        related = await self._fetch_in_chunks(descriptor, config.related_local_key, related_ids, callback)
        index = {getattr(entity, config.related_local_key, None): entity for entity in related}

        rows_by_owner = group_by(pivot_rows, config.foreign_key)
        for model in models:
            items: List['Model'] = []
            for row in rows_by_owner.get(getattr(model, config.local_key, None), []):
                entity = index.get(row.get(config.related_key))
                if entity is None:
                    continue
                if config.pivot_fields:
                    entity = with_pivot(entity, row, config.pivot_fields)
                items.append(entity)
            model.set_relation(name, items)

    async def _load_array_foreign_key(
        self,
        models: Sequence['Model'],
        descriptor: RelationDescriptor,
        callback: Optional[PreloadCallback]
    ) -> None:
        config = descriptor.config
        name = descriptor.name
        owner_ids = [unique(array_values(model, config.foreign_key)) for model in models]
        all_ids = unique([value for ids in owner_ids for value in ids])
        if not all_ids:
            self._assign_all(models, name, descriptor.empty_value)
            return

        related = await self._fetch_in_chunks(descriptor, config.owner_key, all_ids, callback)
        index = {getattr(entity, config.owner_key, None): entity for entity in related}
        for model, ids in zip(models, owner_ids):
            model.set_relation(name, [index[value] for value in ids if value in index])


async def preload(instances: Sequence['Model'], *relations: str) -> None:
    """
    对已获取的实例列表批量预加载关联

    Args:
        instances: 同一模型类的实例列表
        *relations: 关联名称
    """
    if not relations:
        raise ValueError(
            "preload() requires at least one relation name. "
            "Usage: await preload(instances, 'relation1', 'relation2', ...)"
        )
    await PreloadManager.for_relations(relations).execute(list(instances))
