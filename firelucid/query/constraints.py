"""
Firelucid 查询约束

不可变的查询指令：谓词（Where）、排序（OrderBy）、数量限制（Limit）、
游标（StartAfter）。由 QueryBuilder 按添加顺序产生，交给文档存储后端执行。
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional, Union

from ..common.exceptions import QueryError
from ..common.timestamps import Timestamp


# 存储支持的谓词运算符
OPERATORS: FrozenSet[str] = frozenset({
    '==', '!=', '<', '<=', '>', '>=',
    'in', 'not-in', 'array-contains', 'array-contains-any',
})
# 值为列表的运算符（受存储 in 谓词数量限制）
LIST_OPERATORS: FrozenSet[str] = frozenset({'in', 'not-in', 'array-contains-any'})

ASCENDING = 'asc'
DESCENDING = 'desc'

# 文档 id 的字段名
DOCUMENT_ID = 'id'

_MISSING = object()


def resolve_field(data: Dict[str, Any], field: str, doc_id: Optional[str] = None) -> Any:
    """
    读取文档字段，支持点号路径（'address.city'）

    字段名为 'id' 时返回文档 id。字段不存在时返回 _MISSING。
    """
    if field == DOCUMENT_ID and doc_id is not None:
        return doc_id
    value: Any = data
    for part in field.split('.'):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def normalize(value: Any) -> Any:
    """datetime 统一转为 Timestamp，便于比较"""
    if isinstance(value, datetime):
        return Timestamp.from_datetime(value)
    return value


@dataclass(frozen=True)
class Where:
    """谓词约束"""
    field: str
    operator: str
    value: Any

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise QueryError(
                f"Unknown operator: '{self.operator}'. "
                f"Valid operators: {', '.join(sorted(OPERATORS))}"
            )
        if self.operator in LIST_OPERATORS and not isinstance(self.value, (list, tuple, set)):
            raise QueryError(f"Operator '{self.operator}' requires a list of values")

    def evaluate(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> bool:
        """
        在原始文档上评估谓词

        字段缺失或为 None 时，除 '==' / 'in' 显式匹配 None 外均不匹配。

        Args:
            data: 文档原始字段
            doc_id: 文档 id（用于 'id' 字段）

        Returns:
            是否匹配
        """
        current = resolve_field(data, self.field, doc_id)
        if current is _MISSING:
            return False
        current = normalize(current)
        op = self.operator

        if op == '==':
            return current == normalize(self.value)
        if op == 'in':
            return current in [normalize(v) for v in self.value]
        if current is None:
            return False
        if op == '!=':
            return current != normalize(self.value)
        if op == 'not-in':
            return current not in [normalize(v) for v in self.value]
        if op == 'array-contains':
            return isinstance(current, list) and normalize(self.value) in [normalize(v) for v in current]
        if op == 'array-contains-any':
            if not isinstance(current, list):
                return False
            items = [normalize(v) for v in current]
            return any(normalize(v) in items for v in self.value)

        target = normalize(self.value)
        try:
            if op == '<':
                return current < target
            if op == '<=':
                return current <= target
            if op == '>':
                return current > target
            return current >= target
        except TypeError:
            # 类型不同的值不可比较
            return False


@dataclass(frozen=True)
class OrderBy:
    """排序约束"""
    field: str
    direction: str = ASCENDING

    def __post_init__(self) -> None:
        if self.direction not in (ASCENDING, DESCENDING):
            raise QueryError(f"Invalid order direction: '{self.direction}'")

    @property
    def descending(self) -> bool:
        return self.direction == DESCENDING


@dataclass(frozen=True)
class Limit:
    """数量限制约束"""
    count: int

    def __post_init__(self) -> None:
        if not isinstance(self.count, int) or self.count < 0:
            raise QueryError(f"limit() requires a non-negative integer, got {self.count!r}")


@dataclass(frozen=True)
class StartAfter:
    """
    游标约束

    cursor 可以是实体实例、DocumentSnapshot，或与排序字段一一对应的值序列。
    """
    cursor: Any


QueryConstraint = Union[Where, OrderBy, Limit, StartAfter]
