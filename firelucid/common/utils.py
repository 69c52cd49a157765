"""
Firelucid 通用工具函数
"""

from typing import Any, Callable, Dict, Hashable, List, Sequence, TypeVar, Union

from .exceptions import InvalidChunkSizeError

T = TypeVar('T')


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """
    将序列按固定大小分块

    Args:
        items: 要分块的序列
        size: 每块的大小

    Returns:
        分块后的列表，例如 chunk([1, 2, 3, 4, 5], 2) -> [[1, 2], [3, 4], [5]]

    Raises:
        InvalidChunkSizeError: size 小于等于 0
    """
    if size <= 0:
        raise InvalidChunkSizeError(size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def group_by(
    items: Sequence[T],
    key: Union[str, Callable[[T], Any]]
) -> Dict[Hashable, List[T]]:
    """
    将序列按指定 key 分组，保持原有顺序

    key 为 None 的元素会被丢弃。

    Args:
        items: 要分组的序列
        key: 属性名/字典键，或取值函数

    Returns:
        {key 值: [元素, ...]}
    """
    if callable(key):
        getter = key
    else:
        def getter(item: Any) -> Any:
            if isinstance(item, dict):
                return item.get(key)
            return getattr(item, key, None)

    grouped: Dict[Hashable, List[T]] = {}
    for item in items:
        group_key = getter(item)
        if group_key is None:
            continue
        grouped.setdefault(group_key, []).append(item)
    return grouped


def unique(values: Sequence[T]) -> List[T]:
    """去重并保持首次出现的顺序"""
    seen = set()
    result: List[T] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


def is_blank(value: Any) -> bool:
    """None 和空字符串视为空值"""
    return value is None or value == ''
