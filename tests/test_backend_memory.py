"""
Firelucid 内存存储引擎测试

测试文档读写、谓词运算符、排序、游标分页、in 上限和原子批次。
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest
import pytest_asyncio

from firelucid import MemoryBackendOptions, MemoryStore, Timestamp
from firelucid.backends.base import DocumentRef, QuerySnapshot
from firelucid.common.exceptions import (
    BatchLimitExceededError,
    DocumentNotFoundError,
    QueryError,
    UnsupportedOperationError,
)
from firelucid.query.constraints import Limit, OrderBy, StartAfter, Where


async def run(store: MemoryStore, path: str, *constraints: Any) -> QuerySnapshot:
    return await store.get_documents(store.query(store.collection(path), list(constraints)))


def ids(snapshot: QuerySnapshot) -> List[str]:
    return [doc.id for doc in snapshot]


@pytest.fixture
def people() -> Dict[str, Dict[str, Any]]:
    return {
        'a': {'name': 'Alice', 'age': 30, 'tags': ['admin', 'dev'], 'address': {'city': 'Paris'}},
        'b': {'name': 'Bob', 'age': 25, 'tags': ['dev'], 'address': {'city': 'Berlin'}},
        'c': {'name': 'Carol', 'age': 35, 'tags': [], 'address': {'city': 'Paris'}},
        'd': {'name': 'Dave', 'age': None, 'tags': ['ops']},
    }


@pytest_asyncio.fixture
async def seeded(store: MemoryStore, people: Dict[str, Dict[str, Any]]) -> MemoryStore:
    for doc_id, data in people.items():
        await store.set_document('people', doc_id, data)
    return store


class TestDocumentOperations:
    """单文档操作测试"""

    @pytest.mark.asyncio
    async def test_add_generates_id(self, store: MemoryStore) -> None:
        doc_id = await store.add_document('items', {'n': 1})
        assert len(doc_id) == 20
        assert doc_id.isalnum()
        assert await store.get_document('items', doc_id) == {'n': 1}

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: MemoryStore) -> None:
        assert await store.get_document('items', 'nope') is None

    @pytest.mark.asyncio
    async def test_stored_data_is_copied(self, store: MemoryStore) -> None:
        """写入和读取都是深拷贝，外部修改不影响存储"""
        data = {'items': [1, 2]}
        await store.set_document('c', 'x', data)
        data['items'].append(3)
        fetched = await store.get_document('c', 'x')
        assert fetched == {'items': [1, 2]}
        fetched['items'].append(4)
        assert (await store.get_document('c', 'x')) == {'items': [1, 2]}

    @pytest.mark.asyncio
    async def test_set_overwrites(self, store: MemoryStore) -> None:
        await store.set_document('c', 'x', {'a': 1, 'b': 2})
        await store.set_document('c', 'x', {'a': 3})
        assert await store.get_document('c', 'x') == {'a': 3}

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, store: MemoryStore) -> None:
        await store.set_document('c', 'x', {'a': 1, 'nested': {'k': 1, 'j': 2}})
        await store.update_document('c', 'x', {'b': 2, 'nested.k': 9})
        assert await store.get_document('c', 'x') == {'a': 1, 'b': 2, 'nested': {'k': 9, 'j': 2}}

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: MemoryStore) -> None:
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await store.update_document('c', 'missing', {'a': 1})
        assert exc_info.value.document_id == 'missing'
        assert exc_info.value.collection == 'c'

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, store: MemoryStore) -> None:
        await store.delete_document('c', 'missing')

    @pytest.mark.asyncio
    async def test_inspection_helpers(self, store: MemoryStore) -> None:
        await store.set_document('c', 'x', {'a': 1})
        assert store.get_collection_data('c') == {'x': {'a': 1}}
        store.clear()
        assert store.get_collection_data('c') == {}


class TestQueries:
    """查询测试"""

    @pytest.mark.asyncio
    async def test_default_order_is_document_id(self, seeded: MemoryStore) -> None:
        assert ids(await run(seeded, 'people')) == ['a', 'b', 'c', 'd']

    @pytest.mark.asyncio
    async def test_empty_collection(self, store: MemoryStore) -> None:
        snapshot = await run(store, 'nothing')
        assert snapshot.empty
        assert len(snapshot) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize('where,expected', [
        (Where('age', '==', 30), ['a']),
        (Where('age', '!=', 30), ['b', 'c']),
        (Where('age', '<', 30), ['b']),
        (Where('age', '<=', 30), ['a', 'b']),
        (Where('age', '>', 30), ['c']),
        (Where('age', '>=', 30), ['a', 'c']),
        (Where('age', 'in', [25, 35]), ['b', 'c']),
        (Where('age', 'not-in', [25, 35]), ['a']),
        (Where('tags', 'array-contains', 'dev'), ['a', 'b']),
        (Where('tags', 'array-contains-any', ['ops', 'admin']), ['a', 'd']),
        (Where('address.city', '==', 'Paris'), ['a', 'c']),
        (Where('age', '==', None), ['d']),
        (Where('id', 'in', ['b', 'd']), ['b', 'd']),
    ])
    async def test_operators(self, seeded: MemoryStore, where: Where, expected: List[str]) -> None:
        assert ids(await run(seeded, 'people', where)) == expected

    @pytest.mark.asyncio
    async def test_multiple_wheres_are_anded(self, seeded: MemoryStore) -> None:
        snapshot = await run(seeded, 'people', Where('address.city', '==', 'Paris'), Where('age', '>', 30))
        assert ids(snapshot) == ['c']

    @pytest.mark.asyncio
    async def test_order_by_desc_with_limit(self, seeded: MemoryStore) -> None:
        snapshot = await run(seeded, 'people', OrderBy('age', 'desc'), Limit(2))
        assert ids(snapshot) == ['c', 'a']

    @pytest.mark.asyncio
    async def test_order_by_places_null_first(self, seeded: MemoryStore) -> None:
        """null 排在数字之前；缺少排序字段的文档被排除"""
        await seeded.set_document('people', 'e', {'name': 'Eve'})
        snapshot = await run(seeded, 'people', OrderBy('age'))
        assert ids(snapshot) == ['d', 'b', 'a', 'c']

    @pytest.mark.asyncio
    async def test_last_limit_wins(self, seeded: MemoryStore) -> None:
        snapshot = await run(seeded, 'people', Limit(1), Limit(3))
        assert len(snapshot) == 3

    @pytest.mark.asyncio
    async def test_start_after_values(self, seeded: MemoryStore) -> None:
        snapshot = await run(seeded, 'people', Where('age', '>', 0), OrderBy('age'), StartAfter([25]))
        assert ids(snapshot) == ['a', 'c']

    @pytest.mark.asyncio
    async def test_start_after_snapshot(self, seeded: MemoryStore) -> None:
        first_page = await run(seeded, 'people', OrderBy('name'), Limit(2))
        assert ids(first_page) == ['a', 'b']
        second_page = await run(seeded, 'people', OrderBy('name'), StartAfter(first_page.docs[-1]), Limit(2))
        assert ids(second_page) == ['c', 'd']

    @pytest.mark.asyncio
    async def test_timestamps_compare_with_datetimes(self, store: MemoryStore) -> None:
        await store.set_document('events', 'old', {'at': Timestamp(100)})
        await store.set_document('events', 'new', {'at': Timestamp(200)})
        cutoff = datetime.fromtimestamp(150, tz=timezone.utc)
        assert ids(await run(store, 'events', Where('at', '>', cutoff))) == ['new']

    @pytest.mark.asyncio
    async def test_in_values_limit(self, seeded: MemoryStore) -> None:
        """in 谓词超过 max_in_values 个值时由存储拒绝"""
        with pytest.raises(QueryError):
            await run(seeded, 'people', Where('age', 'in', list(range(11))))

    @pytest.mark.asyncio
    async def test_custom_in_values_limit(self) -> None:
        store = MemoryStore(MemoryBackendOptions(max_in_values=2))
        with pytest.raises(QueryError):
            await run(store, 'people', Where('id', 'in', ['a', 'b', 'c']))

    def test_unknown_operator(self) -> None:
        with pytest.raises(QueryError):
            Where('age', 'like', 3)


class TestWriteBatch:
    """原子写批次测试"""

    @pytest.mark.asyncio
    async def test_commit_applies_all(self, seeded: MemoryStore) -> None:
        batch = seeded.batch()
        batch.update(DocumentRef('people', 'a'), {'age': 31})
        batch.delete(DocumentRef('people', 'b'))
        assert len(batch) == 2
        await batch.commit()
        assert (await seeded.get_document('people', 'a'))['age'] == 31
        assert await seeded.get_document('people', 'b') is None

    @pytest.mark.asyncio
    async def test_failed_batch_applies_nothing(self, seeded: MemoryStore) -> None:
        """任一 update 目标不存在时整个批次不生效"""
        batch = seeded.batch()
        batch.update(DocumentRef('people', 'a'), {'age': 99})
        batch.update(DocumentRef('people', 'missing'), {'age': 1})
        with pytest.raises(DocumentNotFoundError):
            await batch.commit()
        assert (await seeded.get_document('people', 'a'))['age'] == 30

    @pytest.mark.asyncio
    async def test_update_after_delete_in_same_batch_fails(self, seeded: MemoryStore) -> None:
        batch = seeded.batch()
        batch.delete(DocumentRef('people', 'a'))
        batch.update(DocumentRef('people', 'a'), {'age': 1})
        with pytest.raises(DocumentNotFoundError):
            await batch.commit()
        assert await seeded.get_document('people', 'a') is not None

    @pytest.mark.asyncio
    async def test_batch_size_limit(self) -> None:
        store = MemoryStore(MemoryBackendOptions(max_batch_size=2))
        for doc_id in 'xyz':
            await store.set_document('c', doc_id, {})
        batch = store.batch()
        for doc_id in 'xyz':
            batch.delete(DocumentRef('c', doc_id))
        with pytest.raises(BatchLimitExceededError) as exc_info:
            await batch.commit()
        assert exc_info.value.limit == 2
        assert len(store.get_collection_data('c')) == 3

    @pytest.mark.asyncio
    async def test_commit_twice(self, store: MemoryStore) -> None:
        batch = store.batch()
        await batch.commit()
        with pytest.raises(UnsupportedOperationError):
            await batch.commit()
