"""
Firelucid Firestore 后端测试

值转换不依赖 SDK；存储适配器测试使用 MagicMock 客户端，
需要安装 google-cloud-firestore（未安装时跳过）。
"""

import sys
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from firelucid import FirestoreBackendOptions, Timestamp
from firelucid.backends.backend_firestore import FirestoreStore, from_store_value, to_store_value
from firelucid.common.exceptions import ConfigurationError, DocumentNotFoundError, QueryError
from firelucid.query.constraints import Limit, OrderBy, Where

CREATED = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


class TestValueConversion:
    """Timestamp 与 SDK datetime 互转"""

    def test_to_store_value_nested(self) -> None:
        stamp = Timestamp.from_datetime(CREATED)
        converted = to_store_value({'at': stamp, 'history': [stamp, 1], 'meta': {'at': stamp}})
        assert converted == {'at': CREATED, 'history': [CREATED, 1], 'meta': {'at': CREATED}}

    def test_from_store_value_nested(self) -> None:
        converted = from_store_value({'at': CREATED, 'items': [CREATED, 'x']})
        assert converted['at'] == Timestamp(int(CREATED.timestamp()), 250_000_000)
        assert converted['items'][1] == 'x'

    def test_plain_values_untouched(self) -> None:
        assert to_store_value('text') == 'text'
        assert from_store_value(3.5) == 3.5


def test_missing_sdk_raises_configuration_error() -> None:
    blocked = {
        'google.cloud.firestore': None,
        'google.cloud.firestore_v1.base_query': None,
    }
    with patch.dict(sys.modules, blocked):
        with pytest.raises(ConfigurationError, match='google-cloud-firestore'):
            FirestoreStore(client=MagicMock())


@pytest.fixture
def firestore() -> Any:
    return pytest.importorskip('google.cloud.firestore')


@pytest.fixture
def client(firestore: Any) -> MagicMock:
    return MagicMock()


@pytest.fixture
def store(client: MagicMock) -> FirestoreStore:
    return FirestoreStore(FirestoreBackendOptions(max_in_values=30), client=client)


class TestFirestoreStore:
    """存储适配器测试"""

    def test_options(self, store: FirestoreStore) -> None:
        assert store.max_in_values == 30
        assert store.max_batch_size == 500

    @pytest.mark.asyncio
    async def test_get_document_converts_timestamps(self, store: FirestoreStore, client: MagicMock) -> None:
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {'name': 'Alice', 'created_at': CREATED}
        client.collection.return_value.document.return_value.get = AsyncMock(return_value=snapshot)

        data = await store.get_document('users', 'u1')

        client.collection.assert_called_with('users')
        client.collection.return_value.document.assert_called_with('u1')
        assert data == {'name': 'Alice', 'created_at': Timestamp.from_datetime(CREATED)}

    @pytest.mark.asyncio
    async def test_get_missing_document(self, store: FirestoreStore, client: MagicMock) -> None:
        client.collection.return_value.document.return_value.get = AsyncMock(
            return_value=MagicMock(exists=False)
        )
        assert await store.get_document('users', 'ghost') is None

    @pytest.mark.asyncio
    async def test_set_document_converts_timestamps(self, store: FirestoreStore, client: MagicMock) -> None:
        document = client.collection.return_value.document.return_value
        document.set = AsyncMock()
        await store.set_document('users', 'u1', {'created_at': Timestamp.from_datetime(CREATED)})
        document.set.assert_awaited_once_with({'created_at': CREATED})

    @pytest.mark.asyncio
    async def test_add_document_returns_id(self, store: FirestoreStore, client: MagicMock) -> None:
        client.collection.return_value.add = AsyncMock(return_value=(None, MagicMock(id='generated')))
        assert await store.add_document('users', {'name': 'Bob'}) == 'generated'

    @pytest.mark.asyncio
    async def test_update_missing_document(self, store: FirestoreStore, client: MagicMock) -> None:
        from google.api_core.exceptions import NotFound

        client.collection.return_value.document.return_value.update = AsyncMock(side_effect=NotFound('gone'))
        with pytest.raises(DocumentNotFoundError) as exc_info:
            await store.update_document('users', 'u1', {'name': 'x'})
        assert exc_info.value.document_id == 'u1'

    @pytest.mark.asyncio
    async def test_build_query_translates_constraints(
        self, store: FirestoreStore, client: MagicMock, firestore: Any
    ) -> None:
        query = store.query(store.collection('users'), [
            Where('age', '>=', 18),
            Where('tags', 'array-contains', 'admin'),
            OrderBy('age', 'desc'),
            Limit(5),
        ])

        await store.build_query(query)

        collection = client.collection.return_value
        first_filter = collection.where.call_args.kwargs['filter']
        assert (first_filter.field_path, first_filter.op_string, first_filter.value) == ('age', '>=', 18)

        second = collection.where.return_value
        second_filter = second.where.call_args.kwargs['filter']
        assert (second_filter.op_string, second_filter.value) == ('array_contains', 'admin')

        ordered = second.where.return_value
        ordered.order_by.assert_called_once_with('age', direction=firestore.Query.DESCENDING)
        ordered.order_by.return_value.limit.assert_called_once_with(5)

    @pytest.mark.asyncio
    async def test_id_filter_uses_document_references(self, store: FirestoreStore, client: MagicMock) -> None:
        query = store.query(store.collection('users'), [Where('id', 'in', ['a', 'b'])])

        await store.build_query(query)

        collection = client.collection.return_value
        id_filter = collection.where.call_args.kwargs['filter']
        assert id_filter.field_path == '__name__'
        assert id_filter.op_string == 'in'
        assert id_filter.value == [collection.document.return_value] * 2
        collection.document.assert_any_call('a')
        collection.document.assert_any_call('b')

    @pytest.mark.asyncio
    async def test_unsupported_constraint(self, store: FirestoreStore) -> None:
        query = store.query(store.collection('users'), [object()])  # type: ignore[list-item]
        with pytest.raises(QueryError):
            await store.build_query(query)

    @pytest.mark.asyncio
    async def test_get_documents(self, store: FirestoreStore, client: MagicMock) -> None:
        snap = MagicMock(id='u1')
        snap.to_dict.return_value = {'name': 'Alice', 'created_at': CREATED}
        client.collection.return_value.get = AsyncMock(return_value=[snap])

        result = await store.get_documents(store.query(store.collection('users')))

        assert len(result) == 1
        doc = result.docs[0]
        assert doc.id == 'u1'
        assert doc.reference.path == 'users/u1'
        assert doc.data['created_at'] == Timestamp.from_datetime(CREATED)

    @pytest.mark.asyncio
    async def test_batch(self, store: FirestoreStore, client: MagicMock) -> None:
        sdk_batch = client.batch.return_value
        sdk_batch.commit = AsyncMock()

        batch = store.batch()
        ref = store.collection('users').document('u1')
        batch.update(ref, {'seen_at': Timestamp.from_datetime(CREATED)}).delete(ref)
        await batch.commit()

        document = client.collection.return_value.document.return_value
        sdk_batch.update.assert_called_once_with(document, {'seen_at': CREATED})
        sdk_batch.delete.assert_called_once_with(document)
        sdk_batch.commit.assert_awaited_once()
