"""
Firelucid 实体映射

Model 是所有实体的基类。通过 declarative_base(db) 得到绑定到
Database 的基类，再派生具体模型：

    db = Database(engine='memory')
    Base = declarative_base(db)

    class User(Base):
        __collection__ = 'users'      # 省略时由类名推导：User -> users
        status = 'active'             # 类级默认值，复制到每个新实例

        posts = HasMany('Post', foreign_key='user_id')

    user = await User.create(name='Alice')
    user.name = 'Alicia'
    await user.save()

字段就是普通实例属性。以 '_' 开头的属性为内部状态，不参与序列化：
_relations（已加载的关联值）、_loaded_relations、_original（最近一次
持久化状态的深拷贝，用于脏检查）、_pivot。
"""

import asyncio
import copy
import json
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Set, Type, TYPE_CHECKING

from .database import Database
from .hooks import HookManager
from ..common.exceptions import (
    EntityNotFoundError,
    MissingIdentifierError,
    StoreNotInitializedError,
    UnknownRelationError,
)
from ..common.timestamps import Timestamp, to_native
from ..common.utils import is_blank
from ..query.builder import QueryBuilder
from ..relations.base import BoundRelation, RelationDescriptor
from ..relations.preload import PreloadManager

if TYPE_CHECKING:
    from ..backends.base import DocumentStore


TIMESTAMP_FIELDS = ('created_at', 'updated_at')

_MISSING = object()


def pluralize(name: str) -> str:
    """user -> users, category -> categories, box -> boxes"""
    if name.endswith('y') and len(name) > 1 and name[-2] not in 'aeiou':
        return name[:-1] + 'ies'
    if name.endswith(('s', 'x', 'z', 'ch', 'sh')):
        return name + 'es'
    return name + 's'


def _json_default(value: Any) -> Any:
    if isinstance(value, Timestamp):
        value = value.to_datetime()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if isinstance(value, Model):
        return value.to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Model:
    """实体基类"""

    __abstract__: ClassVar[bool] = True
    __collection__: ClassVar[Optional[str]] = None
    __timestamps__: ClassVar[bool] = True
    __database__: ClassVar[Optional[Database]] = None
    __relations__: ClassVar[Dict[str, RelationDescriptor]] = {}
    __field_defaults__: ClassVar[Dict[str, Any]] = {}

    id: Optional[str]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__field_defaults__ = cls._collect_field_defaults()
        if cls.__dict__.get('__abstract__', False):
            return
        if cls.__database__ is not None:
            cls.__database__.register_model(cls)

    @classmethod
    def _collect_field_defaults(cls) -> Dict[str, Any]:
        """模型类上声明的公开、非可调用、非描述符类属性"""
        defaults: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            if klass is Model or not issubclass(klass, Model):
                continue
            for name, value in vars(klass).items():
                if name.startswith('_') or callable(value) or hasattr(value, '__get__'):
                    continue
                defaults[name] = value
        return defaults

    def __init__(self, **data: Any):
        self._relations: Dict[str, Any] = {}
        self._loaded_relations: Set[str] = set()
        self._original: Dict[str, Any] = {}
        self._pivot: Optional[Dict[str, Any]] = None
        self._collection_path: Optional[str] = None
        self.id = None
        for name, value in type(self).__field_defaults__.items():
            setattr(self, name, copy.deepcopy(value))
        self.merge(**data)

    # ------------------------------------------------------------------
    # 生命周期钩子（默认空实现，子类按需覆盖，可以是协程）
    # ------------------------------------------------------------------

    def before_save(self) -> Any:
        pass

    def after_save(self, context: Any) -> Any:
        pass

    def before_create(self) -> Any:
        pass

    def after_create(self) -> Any:
        pass

    def before_update(self, context: Any) -> Any:
        pass

    def after_update(self) -> Any:
        pass

    def before_delete(self) -> Any:
        pass

    def after_delete(self) -> Any:
        pass

    # ------------------------------------------------------------------
    # 类级元数据
    # ------------------------------------------------------------------

    @classmethod
    def get_collection_name(cls) -> str:
        if cls.__collection__:
            return cls.__collection__
        return pluralize(cls.__name__.lower())

    @classmethod
    def get_store(cls) -> 'DocumentStore':
        """
        Raises:
            StoreNotInitializedError: 模型未绑定 Database 或 Database 未初始化
        """
        if cls.__database__ is None:
            raise StoreNotInitializedError(
                f"{cls.__name__} is not bound to a Database; derive it from declarative_base(db)"
            )
        return cls.__database__.store

    @classmethod
    def get_relation(cls, name: str) -> RelationDescriptor:
        """
        Raises:
            UnknownRelationError: 模型没有该关联
        """
        descriptor = cls.__relations__.get(name)
        if descriptor is None:
            raise UnknownRelationError(cls.__name__, name)
        return descriptor

    @classmethod
    def define_relation(cls, name: str, descriptor: RelationDescriptor) -> RelationDescriptor:
        """
        在类定义之后注册关联，等价于类属性声明

        Example:
            User.define_relation('posts', HasMany('Post', foreign_key='user_id'))
        """
        descriptor.attach(cls, name)
        setattr(cls, name, descriptor)
        return descriptor

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    @classmethod
    def query(cls, collection_path: Optional[str] = None) -> QueryBuilder:
        return QueryBuilder(cls, collection_path)

    @classmethod
    async def all(cls) -> List['Model']:
        return await cls.query().get()

    @classmethod
    async def first(cls) -> Optional['Model']:
        return await cls.query().first()

    @classmethod
    async def find(cls, entity_id: Any, collection_path: Optional[str] = None) -> Optional['Model']:
        """按 id 读取，不存在返回 None"""
        if is_blank(entity_id):
            return None
        path = collection_path or cls.get_collection_name()
        data = await cls.get_store().get_document(path, entity_id)
        if data is None:
            return None
        return cls.hydrate(entity_id, data, collection_path=path)

    @classmethod
    async def find_or_fail(cls, entity_id: Any, collection_path: Optional[str] = None) -> 'Model':
        """
        Raises:
            EntityNotFoundError: 不存在
        """
        instance = await cls.find(entity_id, collection_path)
        if instance is None:
            raise EntityNotFoundError(cls.__name__, entity_id, collection_path or cls.get_collection_name())
        return instance

    @classmethod
    def hydrate(cls, entity_id: str, data: Dict[str, Any], collection_path: Optional[str] = None) -> 'Model':
        """
        由存储原始字段构建实例

        created_at / updated_at 的存储时间戳转换为 datetime；以 '_' 开头的
        原始字段与内部状态冲突，不会被赋值。
        """
        instance = cls()
        for key, value in data.items():
            if key.startswith('_'):
                continue
            if key in TIMESTAMP_FIELDS:
                value = to_native(value)
            setattr(instance, key, value)
        instance.id = entity_id
        instance._collection_path = collection_path
        instance._sync_original()
        return instance

    # ------------------------------------------------------------------
    # 创建 / 删除
    # ------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        data: Optional[Dict[str, Any]] = None,
        *,
        collection_path: Optional[str] = None,
        **fields: Any
    ) -> 'Model':
        """
        创建实体（存储分配 id）

        顺序: before_save -> before_create -> [写入] -> after_create -> after_save
        """
        instance = cls(**{**(data or {}), **fields})
        instance._collection_path = collection_path
        await instance._insert()
        return instance

    @classmethod
    async def create_with_id(
        cls,
        entity_id: str,
        data: Optional[Dict[str, Any]] = None,
        *,
        collection_path: Optional[str] = None,
        **fields: Any
    ) -> 'Model':
        """使用指定 id 创建实体（覆盖同 id 文档）"""
        if is_blank(entity_id):
            raise MissingIdentifierError(cls.__name__, 'create_with_id')
        instance = cls(**{**(data or {}), **fields})
        instance._collection_path = collection_path
        await instance._insert(entity_id)
        return instance

    @classmethod
    async def create_many(
        cls,
        items: Iterable[Dict[str, Any]],
        *,
        collection_path: Optional[str] = None
    ) -> List['Model']:
        """并发创建多个实体，彼此之间没有原子性"""
        return list(await asyncio.gather(*[
            cls.create(item, collection_path=collection_path) for item in items
        ]))

    @classmethod
    async def destroy(cls, entity_id: str, collection_path: Optional[str] = None) -> None:
        """按 id 删除文档（不读取实体，不触发钩子）"""
        if is_blank(entity_id):
            raise MissingIdentifierError(cls.__name__, 'destroy')
        await cls.get_store().delete_document(collection_path or cls.get_collection_name(), entity_id)

    async def _insert(self, entity_id: Optional[str] = None) -> None:
        cls = type(self)
        await HookManager.execute_before_create(self)

        payload = self.to_dict()
        payload.pop('id', None)
        now: Optional[Timestamp] = None
        if cls.__timestamps__:
            now = Timestamp.now()
            payload['created_at'] = now
            payload['updated_at'] = now

        store = cls.get_store()
        path = self.collection_path
        if entity_id is None:
            entity_id = await store.add_document(path, payload)
        else:
            await store.set_document(path, entity_id, payload)

        self.id = entity_id
        self._collection_path = path
        if now is not None:
            self.created_at = now.to_datetime()
            self.updated_at = self.created_at
        self._sync_original()

        await HookManager.execute_after_create(self)

    # ------------------------------------------------------------------
    # 实例操作
    # ------------------------------------------------------------------

    @property
    def collection_path(self) -> str:
        """实例所在集合路径（从子集合加载的实例为完整路径）"""
        return self._collection_path or type(self).get_collection_name()

    def merge(self, **data: Any) -> 'Model':
        for key, value in data.items():
            setattr(self, key, value)
        return self

    async def save(self) -> 'Model':
        """
        保存实例（使用存储的 update 原语）

        从未持久化过的实例（_original 为空）触发 create 钩子，否则触发 update 钩子。
        created_at 创建后不可修改。

        Raises:
            MissingIdentifierError: 实例没有 id
        """
        cls = type(self)
        if is_blank(self.id):
            raise MissingIdentifierError(cls.__name__, 'save')

        is_new = not self._original
        if is_new:
            await HookManager.execute_before_create(self)
        else:
            await HookManager.execute_before_update(self)

        payload = self.to_dict()
        payload.pop('id', None)
        payload.pop('created_at', None)
        now: Optional[Timestamp] = None
        if cls.__timestamps__:
            now = Timestamp.now()
            payload['updated_at'] = now

        await cls.get_store().update_document(self.collection_path, self.id, payload)

        if now is not None:
            self.updated_at = now.to_datetime()
        self._sync_original()

        if is_new:
            await HookManager.execute_after_create(self)
        else:
            await HookManager.execute_after_update(self)
        return self

    async def delete(self) -> None:
        """
        删除实例

        before_delete 抛出异常时不会访问存储。

        Raises:
            MissingIdentifierError: 实例没有 id
        """
        if is_blank(self.id):
            raise MissingIdentifierError(type(self).__name__, 'delete')
        await HookManager.execute_before_delete(self)
        await type(self).get_store().delete_document(self.collection_path, self.id)
        await HookManager.execute_after_delete(self)

    async def refresh(self) -> 'Model':
        """
        从存储重新读取并覆盖全部字段，已加载的关联被清空

        Raises:
            MissingIdentifierError: 实例没有 id
            EntityNotFoundError: 文档已不存在
        """
        cls = type(self)
        if is_blank(self.id):
            raise MissingIdentifierError(cls.__name__, 'refresh')
        data = await cls.get_store().get_document(self.collection_path, self.id)
        if data is None:
            raise EntityNotFoundError(cls.__name__, self.id, self.collection_path)

        for key in [k for k in self.__dict__ if not k.startswith('_') and k != 'id']:
            del self.__dict__[key]
        for key, value in data.items():
            if key.startswith('_'):
                continue
            if key in TIMESTAMP_FIELDS:
                value = to_native(value)
            setattr(self, key, value)
        self._relations = {}
        self._loaded_relations = set()
        self._sync_original()
        return self

    # ------------------------------------------------------------------
    # 脏检查
    # ------------------------------------------------------------------

    def _sync_original(self) -> None:
        self._original = copy.deepcopy(self.to_dict())

    def dirty_fields(self) -> List[str]:
        """当前值与最近持久化状态不同的字段"""
        current = self.to_dict()
        keys = list(current) + [k for k in self._original if k not in current]
        return [
            key for key in keys
            if current.get(key, _MISSING) != self._original.get(key, _MISSING)
        ]

    def is_dirty(self, field: Optional[str] = None) -> bool:
        if field is None:
            return bool(self.dirty_fields())
        return field in self.dirty_fields()

    # ------------------------------------------------------------------
    # 关联
    # ------------------------------------------------------------------

    def related(self, name: str) -> BoundRelation:
        """
        绑定到当前实例的关联，用于延迟加载

        Example:
            posts = await user.related('posts').get()
            recent = await user.related('posts').query().order_by('created_at', 'desc').limit(5).get()
            await user.related('roles').attach(role.id)
        """
        return type(self).get_relation(name).bind(self)

    def set_relation(self, name: str, value: Any) -> None:
        self._relations[name] = value
        self._loaded_relations.add(name)

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded_relations

    async def load(self, *names: str) -> 'Model':
        """为单个实例加载关联并保存到实例上"""
        await PreloadManager.for_relations(names).execute([self])
        return self

    @property
    def pivot(self) -> Optional[Dict[str, Any]]:
        """pivot 关联附带的字段（没有时为 None）"""
        return self._pivot

    # ------------------------------------------------------------------
    # 序列化
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """公开字段（不含内部状态和可调用对象）"""
        return {
            key: value for key, value in self.__dict__.items()
            if not key.startswith('_') and not callable(value)
        }

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=_json_default, **kwargs)

    def __copy__(self) -> 'Model':
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        clone._relations = dict(self._relations)
        clone._loaded_relations = set(self._loaded_relations)
        clone._original = copy.deepcopy(self._original)
        return clone

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"


def declarative_base(database: Database, name: str = 'Base') -> Type[Model]:
    """
    创建绑定到 Database 的模型基类

    Args:
        database: 数据库上下文
        name: 基类名称

    Returns:
        Model 子类；由它派生的模型共享同一存储
    """
    return type(name, (Model,), {
        '__database__': database,
        '__abstract__': True,
        '__module__': __name__,
    })
