"""
Firelucid 查询子系统

包含查询约束和查询构建器
"""

from .constraints import (
    Where,
    OrderBy,
    Limit,
    StartAfter,
    QueryConstraint,
    OPERATORS,
    ASCENDING,
    DESCENDING,
)
from .builder import QueryBuilder, BatchResult

__all__ = [
    # Constraints
    'Where',
    'OrderBy',
    'Limit',
    'StartAfter',
    'QueryConstraint',
    'OPERATORS',
    'ASCENDING',
    'DESCENDING',
    # Builder
    'QueryBuilder',
    'BatchResult',
]
