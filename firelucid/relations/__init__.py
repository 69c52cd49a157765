"""
Firelucid 关联子系统

四种关联描述符及批量预加载
"""

from .base import RelationVariant, RelationConfig, RelationDescriptor, BoundRelation
from .belongs_to import BelongsTo, BoundBelongsTo
from .has_many import HasMany, BoundHasMany
from .many_to_many import ManyToMany, BoundManyToMany
from .belongs_to_many import BelongsToMany, BoundBelongsToMany
from .preload import PreloadManager, preload

__all__ = [
    'RelationVariant',
    'RelationConfig',
    'RelationDescriptor',
    'BoundRelation',
    'BelongsTo',
    'BoundBelongsTo',
    'HasMany',
    'BoundHasMany',
    'ManyToMany',
    'BoundManyToMany',
    'BelongsToMany',
    'BoundBelongsToMany',
    'PreloadManager',
    'preload',
]
