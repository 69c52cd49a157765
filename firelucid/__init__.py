"""
Firelucid - 异步文档数据库 ODM

把应用实体映射到文档存储的集合上，提供链式查询、声明式关联
（延迟加载与批量预加载）、生命周期钩子、脏字段检查和分块批量写入。

快速开始:
    from firelucid import Database, declarative_base, HasMany, BelongsTo

    db = Database(engine='memory')
    Base = declarative_base(db)

    class User(Base):
        posts = HasMany('Post', foreign_key='user_id')

    class Post(Base):
        author = BelongsTo('User', foreign_key='user_id')

    user = await User.create(name='Alice')
    await Post.create(title='Hello', user_id=user.id)

    users = await User.query().preload('posts').get()
    print(users[0].posts)
"""

import logging

from .core import (
    Database,
    Model,
    declarative_base,
    event,
    AfterSaveContext,
    BeforeUpdateContext,
)
from .query import QueryBuilder, BatchResult, ASCENDING, DESCENDING
from .relations import (
    BelongsTo,
    HasMany,
    ManyToMany,
    BelongsToMany,
    RelationVariant,
    RelationConfig,
    preload,
)
from .backends import (
    DocumentStore,
    MemoryStore,
    FirestoreStore,
    BackendRegistry,
    get_backend,
    get_available_engines,
)
from .common.options import MemoryBackendOptions, FirestoreBackendOptions
from .common.timestamps import Timestamp, Timestamps
from .common.exceptions import (
    FirelucidException,
    ConfigurationError,
    StoreNotInitializedError,
    EntityNotFoundError,
    NoResultsError,
    MissingIdentifierError,
    QueryError,
    InvalidOffsetUsageError,
    InvalidChunkSizeError,
    UnknownRelationError,
    UnsupportedRelationVariantError,
    MissingRelationConfigError,
    UnsupportedOperationError,
    DocumentNotFoundError,
    BatchLimitExceededError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '0.1.0'

__all__ = [
    # Core
    'Database',
    'Model',
    'declarative_base',
    'event',
    'AfterSaveContext',
    'BeforeUpdateContext',
    # Query
    'QueryBuilder',
    'BatchResult',
    'ASCENDING',
    'DESCENDING',
    # Relations
    'BelongsTo',
    'HasMany',
    'ManyToMany',
    'BelongsToMany',
    'RelationVariant',
    'RelationConfig',
    'preload',
    # Backends
    'DocumentStore',
    'MemoryStore',
    'FirestoreStore',
    'BackendRegistry',
    'get_backend',
    'get_available_engines',
    # Options
    'MemoryBackendOptions',
    'FirestoreBackendOptions',
    # Timestamps
    'Timestamp',
    'Timestamps',
    # Exceptions
    'FirelucidException',
    'ConfigurationError',
    'StoreNotInitializedError',
    'EntityNotFoundError',
    'NoResultsError',
    'MissingIdentifierError',
    'QueryError',
    'InvalidOffsetUsageError',
    'InvalidChunkSizeError',
    'UnknownRelationError',
    'UnsupportedRelationVariantError',
    'MissingRelationConfigError',
    'UnsupportedOperationError',
    'DocumentNotFoundError',
    'BatchLimitExceededError',
]
