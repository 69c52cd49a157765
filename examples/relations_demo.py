"""
Firelucid 关联与预加载示例

展示各种关联的使用方式：
- 多对一关联（BelongsTo）
- 一对多关联（HasMany，外键 / 子集合）
- 多对多关联（ManyToMany，通过 pivot 集合）
- 数组外键关联（BelongsToMany）
- 批量预加载与自定义回调
"""

import asyncio
import os
import sys

# 添加父目录到路径
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from firelucid import (
    BelongsTo,
    BelongsToMany,
    Database,
    HasMany,
    ManyToMany,
    declarative_base,
    preload,
)

db = Database(engine='memory')
Base = declarative_base(db)


# 使用字符串（类名）定义关联 - 无需考虑类定义顺序
class User(Base):
    """用户模型"""
    status = 'active'

    posts = HasMany('Post', foreign_key='user_id')
    notifications = HasMany('Notification', subcollection='notifications')
    roles = ManyToMany(
        'Role',
        pivot_collection='user_roles',
        foreign_key='user_id',
        related_key='role_id',
        pivot_fields=('granted_by',),
    )


class Post(Base):
    """文章模型"""
    author = BelongsTo('User', foreign_key='user_id')
    tags = BelongsToMany('Tag', foreign_key='tag_ids')


class Role(Base):
    """角色模型"""


class Tag(Base):
    """标签模型"""
    __timestamps__ = False


class Notification(Base):
    """通知模型（存放在 users/{id}/notifications 子集合中）"""


async def main() -> None:
    print("=" * 70)
    print("Firelucid 关联与预加载示例")
    print("=" * 70)

    # ========================================================================
    # 1. 创建数据
    # ========================================================================
    alice = await User.create(name='Alice')
    bob = await User.create(name='Bob')
    python = await Tag.create_with_id('python', name='Python')
    await Tag.create_with_id('asyncio', name='asyncio')

    await Post.create(title='Hello', user_id=alice.id, tag_ids=[python.id, 'asyncio'])
    await Post.create(title='World', user_id=alice.id, tag_ids=[])
    await Post.create(title='Bob writes', user_id=bob.id, tag_ids=[python.id])

    admin = await Role.create(name='admin')
    await alice.related('roles').attach(admin.id, {'granted_by': 'root'})

    await Notification.create(text='Welcome!', collection_path=f'users/{alice.id}/notifications')

    print(f"\n   用户: Alice (id={alice.id}), Bob (id={bob.id}), 默认状态: {alice.status}")

    # ========================================================================
    # 2. 延迟加载
    # ========================================================================
    print("\n" + "=" * 70)
    print("2. 延迟加载（related(name)）")
    print("=" * 70)

    posts = await alice.related('posts').get()
    print(f"   - Alice 的文章: {[p.title for p in posts]}")

    first_post = posts[0]
    author = await first_post.related('author').get()
    print(f"   - '{first_post.title}' 的作者: {author.name}")

    tags = await first_post.related('tags').get()
    print(f"   - '{first_post.title}' 的标签: {[t.name for t in tags]}")

    roles = await alice.related('roles').get()
    print(f"   - Alice 的角色: {[(r.name, r.pivot) for r in roles]}")

    notifications = await alice.related('notifications').get()
    print(f"   - Alice 的通知: {[n.text for n in notifications]}")

    # ========================================================================
    # 3. 预加载
    # ========================================================================
    print("\n" + "=" * 70)
    print("3. 预加载（避免 N+1 查询）")
    print("=" * 70)

    users = await User.query().preload(
        'posts', lambda q: q.order_by('title').preload('tags')
    ).preload('roles').get()
    for user in users:
        titles = [(p.title, [t.id for t in p.tags]) for p in user.posts]
        print(f"   - {user.name}: 文章 {titles}, 角色 {[r.name for r in user.roles]}")

    all_posts = await Post.all()
    await preload(all_posts, 'author')
    print(f"   - 文章作者: {[(p.title, p.author.name) for p in all_posts]}")

    # ========================================================================
    # 4. pivot 维护
    # ========================================================================
    print("\n" + "=" * 70)
    print("4. pivot 维护（sync / toggle / detach）")
    print("=" * 70)

    editor = await Role.create(name='editor')
    result = await alice.related('roles').sync([editor.id])
    print(f"   - sync: {result}")
    print(f"   - toggle admin -> {await alice.related('roles').toggle(admin.id)}")
    print(f"   - detach admin 删除行数: {await alice.related('roles').detach(admin.id)}")
    print(f"   - 再次 detach 删除行数: {await alice.related('roles').detach(admin.id)}")

    await db.close()
    print("\n示例完成")


if __name__ == '__main__':
    asyncio.run(main())
