"""
Firelucid 数据库上下文

Database 持有已初始化的文档存储句柄，由调用方显式创建并通过
declarative_base(db) 绑定到模型。生命周期：initialize() -> 使用 -> reset()。
"""

import logging
from typing import Any, Dict, Optional, Type, TYPE_CHECKING

from ..backends.base import DocumentStore
from ..backends.registry import get_backend
from ..common.exceptions import ConfigurationError, StoreNotInitializedError
from ..common.options import BackendOptions

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)


class Database:
    """
    数据库上下文

    Example:
        db = Database(engine='memory')
        Base = declarative_base(db)

        # 或延迟初始化
        db = Database()
        Base = declarative_base(db)
        db.initialize(engine='firestore', options=FirestoreBackendOptions(project='demo'))
    """

    def __init__(
        self,
        engine: Optional[str] = None,
        options: Optional[BackendOptions] = None,
        store: Optional[DocumentStore] = None
    ):
        """
        Args:
            engine: 引擎名称，提供时立即初始化
            options: 后端配置选项
            store: 已创建的 DocumentStore 实例（优先于 engine）
        """
        self._store: Optional[DocumentStore] = None
        # {类名 / 集合名: 模型类}，用于字符串形式的关联目标
        self.models: Dict[str, Type['Model']] = {}
        if store is not None or engine is not None:
            self.initialize(store, engine=engine, options=options)

    def initialize(
        self,
        store: Optional[DocumentStore] = None,
        *,
        engine: Optional[str] = None,
        options: Optional[BackendOptions] = None
    ) -> DocumentStore:
        """
        初始化文档存储

        已初始化时记录警告并保留原存储。

        Args:
            store: DocumentStore 实例
            engine: 引擎名称（store 为 None 时使用）
            options: 后端配置选项

        Returns:
            当前生效的 DocumentStore
        """
        if self._store is not None:
            logger.warning("Database is already initialized with %r; call reset() first", self._store)
            return self._store

        if store is None:
            if engine is None:
                raise ConfigurationError("initialize() requires a store instance or an engine name")
            store = get_backend(engine, options)

        self._store = store
        logger.info("Database initialized with %r", store)
        return store

    @property
    def is_initialized(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> DocumentStore:
        """
        当前文档存储

        Raises:
            StoreNotInitializedError: 尚未初始化
        """
        if self._store is None:
            raise StoreNotInitializedError()
        return self._store

    def reset(self) -> None:
        """断开存储（主要用于测试）；已注册的模型保持不变"""
        self._store = None

    async def close(self) -> None:
        """关闭底层存储并重置"""
        if self._store is not None:
            await self._store.close()
        self.reset()

    def register_model(self, model_class: Type['Model']) -> None:
        """登记模型类，按类名和集合名均可查找"""
        self.models[model_class.__name__] = model_class
        self.models.setdefault(model_class.get_collection_name(), model_class)

    def resolve_model(self, name: str) -> Type['Model']:
        """
        按类名或集合名查找模型类

        Raises:
            ConfigurationError: 找不到模型
        """
        model_class = self.models.get(name)
        if model_class is None:
            raise ConfigurationError(
                f"Model '{name}' is not registered. "
                f"Known models: {', '.join(sorted(self.models))}"
            )
        return model_class

    def __repr__(self) -> str:
        return f"Database(store={self._store!r})"
