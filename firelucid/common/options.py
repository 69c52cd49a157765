"""
Firelucid 配置选项 dataclass 定义

该模块定义了所有文档存储后端的配置选项，替代 **kwargs 参数。
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


# 单个原子批次的最大操作数
DEFAULT_MAX_BATCH_SIZE = 500
# 单个 in / not-in / array-contains-any 谓词允许的最大值数量
DEFAULT_MAX_IN_VALUES = 10


@dataclass(slots=True)
class MemoryBackendOptions:
    """内存后端配置选项"""
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE  # 每个批次最多操作数
    max_in_values: int = DEFAULT_MAX_IN_VALUES  # in 谓词最多值数量


@dataclass(slots=True)
class FirestoreBackendOptions:
    """Firestore 后端配置选项"""
    project: Optional[str] = None  # GCP 项目 ID（None 时由环境推断）
    database: Optional[str] = None  # 数据库名称（None 为 '(default)'）
    credentials: Optional[Any] = None  # google.auth 凭据对象
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    max_in_values: int = DEFAULT_MAX_IN_VALUES


# Backend 选项联合类型
BackendOptions = Union[
    MemoryBackendOptions,
    FirestoreBackendOptions,
]


def get_default_backend_options(engine: str) -> BackendOptions:
    """根据引擎类型返回默认选项"""
    defaults: Dict[str, BackendOptions] = {
        'memory': MemoryBackendOptions(),
        'firestore': FirestoreBackendOptions(),
    }
    return defaults.get(engine, MemoryBackendOptions())
