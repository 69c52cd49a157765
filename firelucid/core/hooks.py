"""
Firelucid 生命周期钩子

两种定义钩子的方式：

1. 在模型类上定义同名方法（可以是普通函数或协程）：
    class User(Base):
        async def before_save(self):
            self.email = self.email.lower()

        def after_save(self, context):
            print('saved, new =', context.is_new)

2. 从类外注册监听器：
    from firelucid import event

    @event.listens_for(User, 'before_create')
    def set_defaults(instance):
        instance.status = 'active'

    event.listen(User, 'after_update', audit_changes)
    event.remove(User, 'after_update', audit_changes)

调用顺序（同一事件先调用实例方法，再按注册顺序调用监听器）：
- 创建: before_save -> before_create -> [写入] -> after_create -> after_save(is_new=True)
- 更新: before_save -> before_update(dirty_fields) -> [写入] -> after_update -> after_save(is_new=False)
- 删除: before_delete -> [写入] -> after_delete

before_* 钩子抛出的异常原样向上传播并中止操作；after_* 钩子的异常
被捕获并记录日志，不影响已经提交的写入。
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


BEFORE_HOOKS: Set[str] = {
    'before_save', 'before_create', 'before_update', 'before_delete',
}
AFTER_HOOKS: Set[str] = {
    'after_save', 'after_create', 'after_update', 'after_delete',
}
ALL_HOOKS: Set[str] = BEFORE_HOOKS | AFTER_HOOKS


@dataclass
class AfterSaveContext:
    """after_save 钩子上下文"""
    is_new: bool


@dataclass
class BeforeUpdateContext:
    """before_update 钩子上下文"""
    dirty_fields: List[str] = field(default_factory=list)


# 需要传入上下文参数的钩子
_CONTEXT_HOOKS: Set[str] = {'after_save', 'before_update'}


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class EventManager:
    """
    钩子监听器注册表

    按 (模型类, 钩子名) 保存从类外注册的回调。
    """

    def __init__(self) -> None:
        # {(model_class, hook_name): [callbacks]}
        self._listeners: Dict[Tuple[type, str], List[Callable[..., Any]]] = {}

    def listen(self, target: type, hook_name: str, fn: Callable[..., Any]) -> None:
        """
        注册监听器

        Args:
            target: 模型类
            hook_name: 钩子名称
            fn: 回调函数 fn(instance) 或 fn(instance, context)，可以是协程函数
        """
        if hook_name not in ALL_HOOKS:
            raise ValueError(
                f"Unknown hook: '{hook_name}'. "
                f"Valid hooks: {', '.join(sorted(ALL_HOOKS))}"
            )
        self._listeners.setdefault((target, hook_name), []).append(fn)

    def listens_for(self, target: type, hook_name: str) -> Callable[..., Any]:
        """装饰器方式注册监听器"""
        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.listen(target, hook_name, fn)
            return fn
        return decorator

    def remove(self, target: type, hook_name: str, fn: Callable[..., Any]) -> None:
        """移除监听器"""
        listeners = self._listeners.get((target, hook_name), [])
        if fn in listeners:
            listeners.remove(fn)

    def listeners_for(self, target: type, hook_name: str) -> List[Callable[..., Any]]:
        return list(self._listeners.get((target, hook_name), []))

    def clear(self, target: Optional[type] = None) -> None:
        """
        清除监听器

        Args:
            target: None 清除所有，模型类清除该模型的监听器
        """
        if target is None:
            self._listeners.clear()
            return
        for key in [k for k in self._listeners if k[0] is target]:
            del self._listeners[key]


# 全局监听器注册表
event = EventManager()


class HookManager:
    """
    钩子调度器

    负责按固定顺序调用实例上的钩子方法和已注册的监听器，
    并实现 before 传播 / after 隔离的失败策略。
    """

    @staticmethod
    async def call_hook(instance: Any, hook_name: str, context: Any = None) -> None:
        """调用单个钩子：先实例方法，再监听器。异常原样抛出。"""
        args: Tuple[Any, ...] = (context,) if hook_name in _CONTEXT_HOOKS else ()

        method = getattr(instance, hook_name, None)
        if callable(method):
            await _maybe_await(method(*args))

        for fn in event.listeners_for(type(instance), hook_name):
            await _maybe_await(fn(instance, *args))

    @classmethod
    async def _call_after_hook(cls, instance: Any, hook_name: str, context: Any = None) -> None:
        """调用 after 钩子；失败只记录日志，写入已经提交"""
        try:
            await cls.call_hook(instance, hook_name, context)
        except Exception:
            logger.exception(
                "%s hook failed on %s(id=%r); the write has already been committed",
                hook_name, type(instance).__name__, getattr(instance, 'id', None),
                extra={
                    'model': type(instance).__name__,
                    'hook': hook_name,
                    'entity_id': getattr(instance, 'id', None),
                },
            )

    @classmethod
    async def execute_before_create(cls, instance: Any) -> None:
        """before_save -> before_create"""
        await cls.call_hook(instance, 'before_save')
        await cls.call_hook(instance, 'before_create')

    @classmethod
    async def execute_after_create(cls, instance: Any) -> None:
        """after_create -> after_save(is_new=True)"""
        await cls._call_after_hook(instance, 'after_create')
        await cls._call_after_hook(instance, 'after_save', AfterSaveContext(is_new=True))

    @classmethod
    async def execute_before_update(cls, instance: Any) -> None:
        """before_save -> before_update(dirty_fields)，脏字段在 before_save 之后计算"""
        await cls.call_hook(instance, 'before_save')
        await cls.call_hook(instance, 'before_update', BeforeUpdateContext(instance.dirty_fields()))

    @classmethod
    async def execute_after_update(cls, instance: Any) -> None:
        """after_update -> after_save(is_new=False)"""
        await cls._call_after_hook(instance, 'after_update')
        await cls._call_after_hook(instance, 'after_save', AfterSaveContext(is_new=False))

    @classmethod
    async def execute_before_delete(cls, instance: Any) -> None:
        await cls.call_hook(instance, 'before_delete')

    @classmethod
    async def execute_after_delete(cls, instance: Any) -> None:
        await cls._call_after_hook(instance, 'after_delete')
