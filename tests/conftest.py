"""
Pytest 配置和共享 fixtures

此文件提供 pytest 测试所需的共享配置和 fixtures：
已初始化的内存 Database、绑定的 Base，以及一组带关联的示例模型。
"""
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Generator, Type

import pytest

# 确保可以导入 firelucid
sys.path.insert(0, str(Path(__file__).parent.parent))

from firelucid import (
    BelongsTo,
    BelongsToMany,
    Database,
    HasMany,
    ManyToMany,
    MemoryStore,
    Model,
    declarative_base,
    event,
)


@pytest.fixture(autouse=True)
def clear_events() -> Generator[None, None, None]:
    """每个测试前后清除所有钩子监听器"""
    event.clear()
    yield
    event.clear()


@pytest.fixture
def store() -> MemoryStore:
    """全新的内存存储"""
    return MemoryStore()


@pytest.fixture
def db(store: MemoryStore) -> Database:
    """已初始化的数据库上下文"""
    return Database(store=store)


@pytest.fixture
def Base(db: Database) -> Type[Model]:
    """绑定到 db 的模型基类"""
    return declarative_base(db)


@pytest.fixture
def models(Base: Type[Model]) -> SimpleNamespace:
    """
    带全部关联类型的示例模型

    - User.posts: HasMany（外键）
    - User.notifications: HasMany（子集合）
    - User.roles: ManyToMany（pivot: user_roles）
    - Post.author: BelongsTo
    - Post.tags: BelongsToMany（数组外键 tag_ids）
    """

    class User(Base):
        status = 'active'

        posts = HasMany('Post', foreign_key='user_id')
        notifications = HasMany('Notification', subcollection='notifications')
        roles = ManyToMany(
            'Role',
            pivot_collection='user_roles',
            foreign_key='user_id',
            related_key='role_id',
            pivot_fields=('granted_by',),
        )

    class Post(Base):
        author = BelongsTo('User', foreign_key='user_id')
        tags = BelongsToMany('Tag', foreign_key='tag_ids')

    class Role(Base):
        pass

    class Tag(Base):
        __timestamps__ = False

    class Notification(Base):
        pass

    return SimpleNamespace(User=User, Post=Post, Role=Role, Tag=Tag, Notification=Notification)
