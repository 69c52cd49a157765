"""
Firelucid 文档存储后端基类

定义核心引擎消费的文档存储契约：集合引用、查询、单文档读写和原子批次。
所有 I/O 方法均为协程。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..common.options import BackendOptions, DEFAULT_MAX_BATCH_SIZE, DEFAULT_MAX_IN_VALUES
from ..query.constraints import QueryConstraint


@dataclass(frozen=True)
class CollectionRef:
    """集合引用（支持子集合路径 'users/u1/notifications'）"""
    path: str

    def document(self, document_id: str) -> 'DocumentRef':
        return DocumentRef(self.path, document_id)


@dataclass(frozen=True)
class DocumentRef:
    """文档引用"""
    collection: str
    id: str

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


@dataclass(frozen=True)
class QueryRef:
    """查询引用：集合 + 按顺序应用的约束"""
    collection: CollectionRef
    constraints: Tuple[QueryConstraint, ...] = ()


@dataclass
class DocumentSnapshot:
    """查询返回的单个文档"""
    id: str
    data: Dict[str, Any]
    reference: DocumentRef


@dataclass
class QuerySnapshot:
    """查询结果，保持存储返回的顺序"""
    docs: List[DocumentSnapshot] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return len(self.docs) == 0

    def __len__(self) -> int:
        return len(self.docs)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.docs)


class WriteBatch(ABC):
    """原子写批次：所有操作一起提交或全部不生效"""

    @abstractmethod
    def update(self, ref: DocumentRef, data: Dict[str, Any]) -> 'WriteBatch':
        """加入一个更新操作"""
        pass

    @abstractmethod
    def delete(self, ref: DocumentRef) -> 'WriteBatch':
        """加入一个删除操作"""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """提交批次"""
        pass


class DocumentStore(ABC):
    """
    文档存储抽象基类

    子类需实现所有 I/O 方法，并设置 ENGINE_NAME。
    max_batch_size / max_in_values 是存储自身的限制，由存储负责校验。
    """

    ENGINE_NAME: str = ''
    REQUIRED_DEPENDENCIES: List[str] = []

    def __init__(self, options: Optional[BackendOptions] = None):
        self.options = options
        self.max_batch_size: int = getattr(options, 'max_batch_size', DEFAULT_MAX_BATCH_SIZE)
        self.max_in_values: int = getattr(options, 'max_in_values', DEFAULT_MAX_IN_VALUES)

    def collection(self, path: str) -> CollectionRef:
        """获取集合引用"""
        return CollectionRef(path.strip('/'))

    def query(self, collection: CollectionRef, constraints: Sequence[QueryConstraint] = ()) -> QueryRef:
        """构建查询引用（不执行）"""
        return QueryRef(collection, tuple(constraints))

    @abstractmethod
    async def get_documents(self, query: QueryRef) -> QuerySnapshot:
        """执行查询"""
        pass

    @abstractmethod
    async def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        """读取单个文档，不存在时返回 None"""
        pass

    @abstractmethod
    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        """新增文档并返回存储分配的 id"""
        pass

    @abstractmethod
    async def set_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """以指定 id 写入（覆盖）文档"""
        pass

    @abstractmethod
    async def update_document(self, collection: str, document_id: str, data: Dict[str, Any]) -> None:
        """部分更新已存在的文档"""
        pass

    @abstractmethod
    async def delete_document(self, collection: str, document_id: str) -> None:
        """删除文档（不存在时无操作）"""
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """开启一个原子写批次"""
        pass

    async def close(self) -> None:
        """释放连接资源"""
        pass

    @classmethod
    def is_available(cls) -> bool:
        """检查后端依赖是否已安装"""
        for dependency in cls.REQUIRED_DEPENDENCIES:
            try:
                __import__(dependency)
            except ImportError:
                return False
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(engine='{self.ENGINE_NAME}')"
