"""
Firelucid 模型示例

展示模型的基本用法：
- 创建 / 查找 / 保存 / 删除
- 脏字段检查
- 链式查询、分页和批量更新
- 生命周期钩子与事件监听器
"""

import asyncio
import logging
import os
import sys

# 添加父目录到路径
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from firelucid import BeforeUpdateContext, Database, declarative_base, event

logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

db = Database(engine='memory')
Base = declarative_base(db)


class Product(Base):
    """商品模型"""
    __collection__ = 'products'

    stock = 0

    def before_save(self) -> None:
        self.name = self.name.strip()

    def before_update(self, context: BeforeUpdateContext) -> None:
        print(f"   [hook] before_update: {context.dirty_fields}")

    def after_create(self) -> None:
        # after 钩子失败只记录日志，不影响已完成的写入
        if self.name == 'Broken':
            raise RuntimeError('notification service down')


@event.listens_for(Product, 'after_delete')
def on_delete(instance: Product) -> None:
    print(f"   [listener] deleted {instance.id}")


async def main() -> None:
    print("=" * 70)
    print("Firelucid 模型示例")
    print("=" * 70)

    # 1. CRUD
    print("\n1. 创建 / 查找 / 保存")
    keyboard = await Product.create(name='  Keyboard ', price=120)
    print(f"   - 创建: {keyboard!r}")

    found = await Product.find_or_fail(keyboard.id)
    found.price = 99
    print(f"   - 脏字段: {found.dirty_fields()}")
    await found.save()
    print(f"   - 保存后 is_dirty: {found.is_dirty()}")

    await Product.create_many([
        {'name': f'Cable {n}', 'price': 5 + n, 'stock': n} for n in range(8)
    ])
    await Product.create(name='Broken', price=1)

    # 2. 查询
    print("\n2. 链式查询")
    cheap = await Product.query().where('price', '<', 10).order_by('price', 'desc').get()
    print(f"   - price < 10: {[p.name for p in cheap]}")

    page = await Product.query().order_by('price').limit(3).offset(3).get()
    print(f"   - 第 2 页: {[p.name for p in page]}")
    print(f"   - 有库存数量: {await Product.query().where('stock', '>', 0).count()}")

    # 3. 批量写入
    print("\n3. 批量更新 / 删除")
    result = await Product.query().where('stock', '==', 0).update({'stock': 10})
    print(f"   - 补货: {result.count} 个商品")
    removed = await Product.query().where('name', '==', 'Broken').delete()
    print(f"   - 删除: {removed} 个商品")

    await keyboard.delete()
    print(f"   - 剩余: {await Product.query().count()} 个商品")
    print(f"\n   JSON: {(await Product.first()).to_json()}")

    await db.close()


if __name__ == '__main__':
    asyncio.run(main())
