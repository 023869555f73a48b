"""
Unit tests for order notes, order meta and processor reference repositories.
"""

import pytest

from packages.subscriptions.repositories.order_repository import (
    OrderMetaRepository,
    OrderNoteRepository,
    ProcessorReferenceRepository,
)


@pytest.mark.asyncio
class TestOrderNoteRepository:
    async def test_notes_are_listed_in_insertion_order(self, test_db):
        repo = OrderNoteRepository(test_db)

        await repo.add(10, "First")
        await repo.add(10, "Second")
        await repo.add(11, "Other order")

        notes = await repo.list_for_order(10)

        assert [note.note for note in notes] == ["First", "Second"]
        assert all(note.order_id == 10 for note in notes)


@pytest.mark.asyncio
class TestOrderMetaRepository:
    async def test_set_and_get_value(self, test_db):
        repo = OrderMetaRepository(test_db)

        assert await repo.get_value(10, "subscriptions_created") is None

        await repo.set_value(10, "subscriptions_created", "yes")

        assert await repo.get_value(10, "subscriptions_created") == "yes"
        assert await repo.get_value(11, "subscriptions_created") is None

    async def test_set_value_overwrites(self, test_db):
        repo = OrderMetaRepository(test_db)

        await repo.set_value(10, "renewal_invoice_1", "in_1")
        await repo.set_value(10, "renewal_invoice_1", "in_2")

        assert await repo.get_value(10, "renewal_invoice_1") == "in_2"


@pytest.mark.asyncio
class TestProcessorReferenceRepository:
    async def test_remember_and_forget(self, test_db):
        repo = ProcessorReferenceRepository(test_db)
        kind = ProcessorReferenceRepository.CUSTOMER

        await repo.remember(kind, "7", "cus_old")
        await repo.remember(kind, "7", "cus_new")

        assert await repo.get_remote_id(kind, "7") == "cus_new"
        assert await repo.get_remote_id(ProcessorReferenceRepository.PRODUCT, "7") is None

        await repo.forget(kind, "7")

        assert await repo.get_remote_id(kind, "7") is None
