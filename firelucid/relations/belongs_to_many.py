"""
BelongsToMany: 当前模型用数组字段保存多个目标 id
"""

from typing import Any, List, TYPE_CHECKING

from .base import NO_MATCH, BoundRelation, RelatedTarget, RelationConfig, RelationDescriptor, RelationVariant
from ..common.exceptions import MissingRelationConfigError
from ..common.utils import chunk, is_blank, unique

if TYPE_CHECKING:
    from ..core.model import Model
    from ..query.builder import QueryBuilder


def array_values(entity: Any, field: str) -> List[Any]:
    """读取数组外键，丢弃空值；非数组视为空"""
    value = getattr(entity, field, None)
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if not is_blank(item)]


class BelongsToMany(RelationDescriptor):
    """
    数组外键关联

    Example:
        class Article(Base):
            tags = BelongsToMany('Tag', foreign_key='tag_ids')
    """

    relation_type = 'BelongsToMany'
    many = True

    def __init__(self, related: RelatedTarget, foreign_key: str, owner_key: str = 'id'):
        if not foreign_key:
            raise MissingRelationConfigError(self.relation_type, 'foreign_key')
        super().__init__(related, RelationConfig(
            variant=RelationVariant.TO_MANY_BY_ARRAY_FOREIGN_KEY,
            foreign_key=foreign_key,
            owner_key=owner_key,
        ))

    def bind(self, parent: 'Model') -> 'BoundBelongsToMany':
        return BoundBelongsToMany(parent, self)


class BoundBelongsToMany(BoundRelation):

    def foreign_key_values(self) -> List[Any]:
        return unique(array_values(self.parent, self.config.foreign_key))

    async def get(self) -> List['Model']:
        """数组为空时不访问存储；超过 'in' 上限时分块查询"""
        ids = self.foreign_key_values()
        if not ids:
            return []
        results: List['Model'] = []
        for id_chunk in chunk(ids, self.related_model.get_store().max_in_values):
            results.extend(await self.related_model.query().where_in(self.config.owner_key, id_chunk).get())
        return results

    def query(self) -> 'QueryBuilder':
        ids = self.foreign_key_values()
        if not ids:
            return self.related_model.query().where('id', '==', NO_MATCH)
        return self.related_model.query().where_in(self.config.owner_key, ids)
