"""
HasMany: 目标实体通过外键指向当前模型，或存放在当前文档的子集合中
"""

from typing import List, Optional, TYPE_CHECKING

from .base import NO_MATCH, BoundRelation, RelatedTarget, RelationConfig, RelationDescriptor, RelationVariant
from ..common.exceptions import ConfigurationError, MissingIdentifierError, MissingRelationConfigError
from ..common.utils import is_blank

if TYPE_CHECKING:
    from ..core.model import Model
    from ..query.builder import QueryBuilder


STORAGE_FOREIGN_KEY = 'foreign_key'
STORAGE_SUBCOLLECTION = 'subcollection'


class HasMany(RelationDescriptor):
    """
    一对多关联

    storage 未指定时根据参数推断：提供 subcollection 则为子集合，否则为外键。

    Example:
        class User(Base):
            posts = HasMany('Post', foreign_key='user_id')
            notifications = HasMany('Notification', subcollection='notifications')
    """

    relation_type = 'HasMany'
    many = True

    def __init__(
        self,
        related: RelatedTarget,
        foreign_key: Optional[str] = None,
        local_key: str = 'id',
        subcollection: Optional[str] = None,
        storage: Optional[str] = None
    ):
        if storage is None:
            storage = STORAGE_SUBCOLLECTION if subcollection else STORAGE_FOREIGN_KEY

        if storage == STORAGE_FOREIGN_KEY:
            if not foreign_key:
                raise MissingRelationConfigError(self.relation_type, 'foreign_key')
            config = RelationConfig(
                variant=RelationVariant.TO_MANY_BY_FOREIGN_KEY,
                foreign_key=foreign_key,
                local_key=local_key,
            )
        elif storage == STORAGE_SUBCOLLECTION:
            if not subcollection:
                raise MissingRelationConfigError(self.relation_type, 'subcollection')
            config = RelationConfig(
                variant=RelationVariant.TO_MANY_SUBCOLLECTION,
                local_key=local_key,
                subcollection=subcollection,
            )
        else:
            raise ConfigurationError(
                f"Unknown HasMany storage '{storage}'. "
                f"Expected '{STORAGE_FOREIGN_KEY}' or '{STORAGE_SUBCOLLECTION}'"
            )
        super().__init__(related, config)

    def bind(self, parent: 'Model') -> 'BoundHasMany':
        return BoundHasMany(parent, self)


class BoundHasMany(BoundRelation):

    def subcollection_path(self) -> str:
        """父文档下的子集合路径"""
        parent_id = self.local_key_value()
        if is_blank(parent_id):
            raise MissingIdentifierError(type(self.parent).__name__, 'query a subcollection of')
        return f"{self.parent.collection_path}/{parent_id}/{self.config.subcollection}"

    async def get(self) -> List['Model']:
        if self.config.variant is RelationVariant.TO_MANY_SUBCOLLECTION and is_blank(self.local_key_value()):
            return []
        return await self.query().get()

    def query(self) -> 'QueryBuilder':
        if self.config.variant is RelationVariant.TO_MANY_SUBCOLLECTION:
            return self.related_model.query(self.subcollection_path())

        value = self.local_key_value()
        if is_blank(value):
            return self.related_model.query().where('id', '==', NO_MATCH)
        return self.related_model.query().where(self.config.foreign_key, '==', value)
