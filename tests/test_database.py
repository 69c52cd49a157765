"""
Firelucid 数据库上下文与后端注册表测试
"""

import logging
from typing import Type

import pytest

from firelucid import (
    BackendRegistry,
    Database,
    FirestoreStore,
    MemoryBackendOptions,
    MemoryStore,
    Model,
    declarative_base,
    get_available_engines,
    get_backend,
)
from firelucid.common.exceptions import ConfigurationError, StoreNotInitializedError


class TestDatabaseLifecycle:
    """initialize / reset 生命周期测试"""

    def test_uninitialized_store_raises(self) -> None:
        db = Database()
        assert not db.is_initialized
        with pytest.raises(StoreNotInitializedError):
            _ = db.store

    def test_initialize_with_engine(self) -> None:
        db = Database()
        store = db.initialize(engine='memory', options=MemoryBackendOptions(max_in_values=5))
        assert isinstance(store, MemoryStore)
        assert db.is_initialized
        assert db.store.max_in_values == 5

    def test_initialize_with_store(self) -> None:
        store = MemoryStore()
        db = Database(store=store)
        assert db.store is store

    def test_initialize_requires_store_or_engine(self) -> None:
        with pytest.raises(ConfigurationError):
            Database().initialize()

    def test_reinitialize_keeps_first_store(self, caplog: pytest.LogCaptureFixture) -> None:
        """重复初始化记录警告并保留原存储"""
        first = MemoryStore()
        db = Database(store=first)
        with caplog.at_level(logging.WARNING, logger='firelucid'):
            result = db.initialize(MemoryStore())
        assert result is first
        assert db.store is first
        assert any('already initialized' in record.getMessage() for record in caplog.records)

    def test_reset(self) -> None:
        db = Database(engine='memory')
        db.reset()
        assert not db.is_initialized
        replacement = MemoryStore()
        db.initialize(replacement)
        assert db.store is replacement

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        db = Database(engine='memory')
        await db.close()
        assert not db.is_initialized


class TestModelBinding:
    """declarative_base 与模型注册测试"""

    def test_models_registered_by_name_and_collection(self, db: Database, Base: Type[Model]) -> None:
        class Category(Base):
            pass

        assert db.resolve_model('Category') is Category
        assert db.resolve_model('categories') is Category

    def test_base_is_not_registered(self, db: Database, Base: Type[Model]) -> None:
        assert 'Base' not in db.models

    def test_resolve_unknown_model(self, db: Database) -> None:
        with pytest.raises(ConfigurationError):
            db.resolve_model('Ghost')

    def test_two_databases_are_isolated(self) -> None:
        first_db = Database(engine='memory')
        second_db = Database(engine='memory')
        FirstBase = declarative_base(first_db)
        SecondBase = declarative_base(second_db)

        class Item(FirstBase):
            pass

        class Other(SecondBase):
            __collection__ = 'items'

        assert Item.get_store() is first_db.store
        assert Other.get_store() is second_db.store
        assert 'Item' not in second_db.models

    @pytest.mark.asyncio
    async def test_operations_before_initialize(self) -> None:
        db = Database()
        Base = declarative_base(db)

        class Item(Base):
            pass

        with pytest.raises(StoreNotInitializedError):
            await Item.find('x')

        db.initialize(engine='memory')
        assert await Item.find('x') is None


class TestBackendRegistry:
    """后端注册表测试"""

    def test_builtin_engines(self) -> None:
        assert 'memory' in BackendRegistry.engines()
        assert 'firestore' in BackendRegistry.engines()
        assert BackendRegistry.get('memory') is MemoryStore
        assert BackendRegistry.get('firestore') is FirestoreStore

    def test_get_backend_default_options(self) -> None:
        store = get_backend('memory')
        assert isinstance(store, MemoryStore)
        assert store.max_batch_size == 500

    def test_unknown_engine(self) -> None:
        with pytest.raises(ConfigurationError):
            get_backend('cassandra')

    def test_available_engines(self) -> None:
        available = get_available_engines()
        assert available['memory'] is True
        assert 'firestore' in available
