"""
BelongsTo: 当前模型持有外键，指向一个目标实体
"""

from typing import Any, Optional, TYPE_CHECKING

from .base import NO_MATCH, BoundRelation, RelatedTarget, RelationConfig, RelationDescriptor, RelationVariant
from ..common.exceptions import MissingRelationConfigError
from ..common.utils import is_blank

if TYPE_CHECKING:
    from ..core.model import Model
    from ..query.builder import QueryBuilder


class BelongsTo(RelationDescriptor):
    """
    多对一 / 一对一关联

    Example:
        class Post(Base):
            author = BelongsTo('User', foreign_key='user_id')
    """

    relation_type = 'BelongsTo'
    many = False

    def __init__(self, related: RelatedTarget, foreign_key: str, owner_key: str = 'id'):
        if not foreign_key:
            raise MissingRelationConfigError(self.relation_type, 'foreign_key')
        super().__init__(related, RelationConfig(
            variant=RelationVariant.TO_ONE_BY_FOREIGN_KEY,
            foreign_key=foreign_key,
            owner_key=owner_key,
        ))

    def bind(self, parent: 'Model') -> 'BoundBelongsTo':
        return BoundBelongsTo(parent, self)


class BoundBelongsTo(BoundRelation):

    def foreign_key_value(self) -> Any:
        return getattr(self.parent, self.config.foreign_key, None)

    async def get(self) -> Optional['Model']:
        """外键为空时返回 None，不访问存储"""
        value = self.foreign_key_value()
        if is_blank(value):
            return None
        if self.config.owner_key == 'id':
            return await self.related_model.find(value)
        return await self.query().first()

    def query(self) -> 'QueryBuilder':
        value = self.foreign_key_value()
        if is_blank(value):
            return self.related_model.query().where('id', '==', NO_MATCH)
        return self.related_model.query().where(self.config.owner_key, '==', value)
