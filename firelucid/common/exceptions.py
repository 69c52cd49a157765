"""
Firelucid 异常定义
"""

from typing import Any


class FirelucidException(Exception):
    """Firelucid 基础异常类"""


class ConfigurationError(FirelucidException):
    """配置异常（引擎未知、依赖缺失、关联重复注册等）"""


class StoreNotInitializedError(FirelucidException):
    """文档存储尚未初始化异常"""
    def __init__(self, message: str = ''):
        super().__init__(
            message or
            "Database not initialized. Call database.initialize(...) "
            "or pass a store to Database(...) before running any operation."
        )


class EntityNotFoundError(FirelucidException):
    """实体不存在异常"""
    def __init__(self, model_name: str, entity_id: Any, collection: str):
        self.model_name = model_name
        self.entity_id = entity_id
        self.collection = collection
        super().__init__(
            f"{model_name} with id '{entity_id}' not found in collection '{collection}'"
        )


class NoResultsError(FirelucidException):
    """查询无结果异常"""
    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"No results found in collection '{collection}'")


class MissingIdentifierError(FirelucidException):
    """实例缺少标识符异常"""
    def __init__(self, model_name: str, operation: str):
        self.model_name = model_name
        self.operation = operation
        super().__init__(f"Cannot {operation} {model_name} without id")


class QueryError(FirelucidException):
    """查询构建或执行异常"""


class InvalidOffsetUsageError(QueryError):
    """offset() 在未设置 limit() 时使用"""
    def __init__(self, offset: int):
        self.offset = offset
        super().__init__(
            f"offset({offset}) requires a prior limit(): offset is emulated "
            f"by fetching offset + limit documents"
        )


class InvalidChunkSizeError(FirelucidException):
    """分块大小非法异常"""
    def __init__(self, size: int):
        self.size = size
        super().__init__(f"Chunk size must be greater than 0, got {size}")


class UnknownRelationError(FirelucidException):
    """关联未定义异常"""
    def __init__(self, model_name: str, relation_name: str):
        self.model_name = model_name
        self.relation_name = relation_name
        super().__init__(f"Relation '{relation_name}' not defined on {model_name}")


class UnsupportedRelationVariantError(FirelucidException):
    """无法识别的关联类型异常"""
    def __init__(self, variant: Any):
        self.variant = variant
        super().__init__(f"Unsupported relation variant: {variant!r}")


class MissingRelationConfigError(ConfigurationError):
    """关联缺少必需配置异常"""
    def __init__(self, relation_type: str, field: str):
        self.relation_type = relation_type
        self.field = field
        super().__init__(f"'{field}' is required for {relation_type} relation")


class UnsupportedOperationError(FirelucidException):
    """不支持的操作异常"""


class DocumentNotFoundError(FirelucidException):
    """文档不存在异常（存储层）"""
    def __init__(self, collection: str, document_id: Any):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Document '{document_id}' not found in collection '{collection}'")


class BatchLimitExceededError(FirelucidException):
    """原子批次操作数超出上限异常（存储层）"""
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"A write batch can contain at most {limit} operations")
