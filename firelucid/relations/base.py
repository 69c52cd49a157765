"""
Firelucid 关联描述符基类

关联在类定义时以类属性声明（或通过 Model.define_relation 注册），
描述符在注册时登记到所属模型的 __relations__ 表，并携带不可变的
RelationConfig（含 RelationVariant 类型标签）。

读取实例上的关联属性返回已加载的值（未加载时为 None）；
通过 instance.related(name) 获取绑定到实例的关联对象以延迟加载。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type, Union, TYPE_CHECKING

from ..common.exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..core.model import Model
    from ..query.builder import QueryBuilder


# 不会匹配任何真实文档的值
NO_MATCH = '__firelucid_no_match__'


class RelationVariant(str, Enum):
    """关联类型标签"""
    TO_ONE_BY_FOREIGN_KEY = 'to_one_by_foreign_key'
    TO_MANY_BY_FOREIGN_KEY = 'to_many_by_foreign_key'
    TO_MANY_SUBCOLLECTION = 'to_many_subcollection'
    TO_MANY_BY_PIVOT = 'to_many_by_pivot'
    TO_MANY_BY_ARRAY_FOREIGN_KEY = 'to_many_by_array_foreign_key'


@dataclass(frozen=True)
class RelationConfig:
    """
    关联配置（注册后不可变）

    Attributes:
        variant: 关联类型标签
        foreign_key: 外键字段名（pivot 关联中为 pivot 里指向当前模型的字段）
        local_key: 当前模型用于匹配的字段（默认 'id'）
        owner_key: 目标模型被外键引用的字段（默认 'id'）
        subcollection: 子集合名称
        pivot_collection: pivot 集合名称
        related_key: pivot 里指向目标模型的字段
        related_local_key: 目标模型被 related_key 引用的字段（默认 'id'）
        pivot_fields: 需要从 pivot 行复制到目标实例 pivot 属性的字段
    """
    variant: RelationVariant
    foreign_key: Optional[str] = None
    local_key: str = 'id'
    owner_key: str = 'id'
    subcollection: Optional[str] = None
    pivot_collection: Optional[str] = None
    related_key: Optional[str] = None
    related_local_key: str = 'id'
    pivot_fields: Tuple[str, ...] = ()


# 目标模型：模型类、返回模型类的函数，或模型类名 / 集合名
RelatedTarget = Union[Type['Model'], Callable[[], Type['Model']], str]


class RelationDescriptor(ABC):
    """关联描述符基类"""

    relation_type: str = 'Relation'
    many: bool = True

    def __init__(self, related: RelatedTarget, config: RelationConfig):
        self._related = related
        self.config = config
        self.name: Optional[str] = None
        self.owner: Optional[Type['Model']] = None

    @property
    def variant(self) -> RelationVariant:
        return self.config.variant

    def __set_name__(self, owner: Type['Model'], name: str) -> None:
        self.attach(owner, name)

    def attach(self, owner: Type['Model'], name: str) -> None:
        """
        登记到所属模型的关联表

        Raises:
            ConfigurationError: 描述符已属于其它模型或名称
        """
        if self.owner is not None and (self.owner is not owner or self.name != name):
            raise ConfigurationError(
                f"Relation '{self.name}' is already attached to {self.owner.__name__}"
            )
        self.owner = owner
        self.name = name
        if '__relations__' not in owner.__dict__:
            # 复制父类的关联表，子类新增的关联不影响父类
            setattr(owner, '__relations__', dict(getattr(owner, '__relations__', {})))
        owner.__relations__[name] = self

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return instance._relations.get(self.name)

    def resolve_related(self) -> Type['Model']:
        """解析目标模型类"""
        target = self._related
        if isinstance(target, str):
            if self.owner is None or getattr(self.owner, '__database__', None) is None:
                raise ConfigurationError(
                    f"Cannot resolve related model '{target}' before the relation is attached to a bound model"
                )
            return self.owner.__database__.resolve_model(target)
        if isinstance(target, type):
            return target
        return target()

    def empty_value(self) -> Any:
        """未匹配时的关联值"""
        return [] if self.many else None

    @abstractmethod
    def bind(self, parent: 'Model') -> 'BoundRelation':
        """绑定到父实例"""
        pass

    def __repr__(self) -> str:
        owner = self.owner.__name__ if self.owner is not None else '?'
        return f"{self.relation_type}({owner}.{self.name}, variant='{self.variant.value}')"


class BoundRelation(ABC):
    """绑定到父实例的关联，支持 get() 和 query()"""

    def __init__(self, parent: 'Model', descriptor: RelationDescriptor):
        self.parent = parent
        self.descriptor = descriptor
        self.config = descriptor.config
        self.related_model = descriptor.resolve_related()

    def local_key_value(self) -> Any:
        return getattr(self.parent, self.config.local_key, None)

    @abstractmethod
    async def get(self) -> Any:
        """加载关联数据"""
        pass

    @abstractmethod
    def query(self) -> 'QueryBuilder':
        """返回限定在该关联上的查询构建器"""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.descriptor!r} parent={self.parent!r}>"
