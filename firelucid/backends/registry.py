"""
Firelucid 后端注册表

按引擎名称发现和实例化文档存储后端
"""

from typing import Dict, List, Optional, Type

from .base import DocumentStore
from ..common.exceptions import ConfigurationError
from ..common.options import BackendOptions, get_default_backend_options


class BackendRegistry:
    """后端注册表：{engine_name: DocumentStore 子类}"""

    _backends: Dict[str, Type[DocumentStore]] = {}

    @classmethod
    def register(cls, backend_class: Type[DocumentStore]) -> Type[DocumentStore]:
        """
        注册后端类（可作为类装饰器使用）

        Args:
            backend_class: DocumentStore 子类，必须设置 ENGINE_NAME
        """
        if not backend_class.ENGINE_NAME:
            raise ConfigurationError(f"{backend_class.__name__} must define ENGINE_NAME")
        cls._backends[backend_class.ENGINE_NAME] = backend_class
        return backend_class

    @classmethod
    def get(cls, engine: str) -> Type[DocumentStore]:
        if engine not in cls._backends:
            raise ConfigurationError(
                f"Unknown engine: '{engine}'. "
                f"Available engines: {', '.join(sorted(cls._backends))}"
            )
        return cls._backends[engine]

    @classmethod
    def engines(cls) -> List[str]:
        return sorted(cls._backends)


def get_backend(engine: str, options: Optional[BackendOptions] = None) -> DocumentStore:
    """
    创建后端实例

    Args:
        engine: 引擎名称（'memory' / 'firestore'）
        options: 后端配置选项，None 时使用默认选项

    Returns:
        DocumentStore 实例
    """
    backend_class = BackendRegistry.get(engine)
    if options is None:
        options = get_default_backend_options(engine)
    return backend_class(options)  # type: ignore[call-arg]


def get_available_engines() -> Dict[str, bool]:
    """返回 {引擎名称: 依赖是否可用}"""
    return {
        engine: BackendRegistry.get(engine).is_available()
        for engine in BackendRegistry.engines()
    }
