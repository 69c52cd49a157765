"""
Firelucid 核心模块

包含数据库上下文、实体映射和生命周期钩子
"""

from .database import Database
from .hooks import HookManager, EventManager, event, AfterSaveContext, BeforeUpdateContext
from .model import Model, declarative_base

__all__ = [
    # Database
    'Database',
    # Model
    'Model',
    'declarative_base',
    # Hooks
    'HookManager',
    'EventManager',
    'event',
    'AfterSaveContext',
    'BeforeUpdateContext',
]
