"""
Firelucid 后端模块

提供文档存储契约、引擎注册、发现和实例化功能
"""

from .base import (
    DocumentStore,
    WriteBatch,
    CollectionRef,
    DocumentRef,
    QueryRef,
    DocumentSnapshot,
    QuerySnapshot,
)
from .registry import BackendRegistry, get_backend, get_available_engines
from .backend_memory import MemoryStore, MemoryWriteBatch
from .backend_firestore import FirestoreStore

BackendRegistry.register(MemoryStore)
BackendRegistry.register(FirestoreStore)

__all__ = [
    'DocumentStore',
    'WriteBatch',
    'CollectionRef',
    'DocumentRef',
    'QueryRef',
    'DocumentSnapshot',
    'QuerySnapshot',
    'BackendRegistry',
    'get_backend',
    'get_available_engines',
    'MemoryStore',
    'MemoryWriteBatch',
    'FirestoreStore',
]
