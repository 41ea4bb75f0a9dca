"""Tests for the conversation blob DAL and the background persister."""

import aiosqlite
import pytest

from dal.conversation_dal import STORAGE_KEY, ConversationDAL
from models.conversation_models import Message, Role
from services.conversation_persister import ConversationPersister
from services.conversation_store import ConversationStore
from utils.database_init import AsyncDatabaseInitializer


@pytest.fixture
def db(tmp_path) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def dal(db) -> ConversationDAL:
    return ConversationDAL(db)


async def write_raw(db: AsyncDatabaseInitializer, value: str) -> None:
    async with db.connection() as conn:
        await conn.execute("INSERT INTO STATE (key, value) VALUES (?, ?)", (STORAGE_KEY, value))
        await conn.commit()


class TestDatabaseInitializer:
    def test_file_path_is_rejected(self, tmp_path):
        target = tmp_path / "not-a-dir"
        target.write_text("x")

        with pytest.raises(RuntimeError):
            AsyncDatabaseInitializer(target)

    async def test_existing_rows_survive_reinitialization(self, db, tmp_path):
        await write_raw(db, "[]")

        again = AsyncDatabaseInitializer(tmp_path / "db")
        await again.ensure_database()

        async with aiosqlite.connect(again.db_path) as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM STATE")
            assert (await cur.fetchone())[0] == 1


class TestConversationDAL:
    async def test_missing_blob_loads_none(self, dal):
        assert await dal.load() is None

    async def test_saved_collection_is_restored(self, dal):
        store = ConversationStore()
        conversation = store.create_conversation()
        store.append_message(conversation.id, Message(role=Role.USER, content="salom"))
        store.append_message(conversation.id, Message(role=Role.ASSISTANT, content="Salom!", decoration="✨"))
        store.toggle_liked(conversation.id, 1)

        await dal.save(store.snapshot())
        await dal.save(store.snapshot())
        loaded = await dal.load()

        assert [c.id for c in loaded] == [conversation.id]
        assert loaded[0].title == "salom"
        assert loaded[0].messages[1].liked is True
        assert loaded[0].messages[1].decoration == "✨"

    @pytest.mark.parametrize("blob", ["{not json", '{"id": 1}', '[{"messages": []}]'])
    async def test_corrupt_blob_loads_none(self, db, dal, blob):
        await write_raw(db, blob)

        assert await dal.load() is None

    async def test_legacy_image_type_key_is_read(self, db, dal):
        await write_raw(
            db,
            '[{"id": "1", "title": "x", "messages": [{"role": "user", "content": "", '
            '"image": "data:image/png;base64,QUJD", "imageType": "image/png", "imageBase64": "QUJD"}]}]',
        )

        loaded = await dal.load()

        assert loaded[0].messages[0].image_mime == "image/png"


class TestConversationPersister:
    async def test_mutations_are_written(self, dal):
        store = ConversationStore()
        persister = ConversationPersister(dal)
        await persister.restore(store)
        persister.attach(store)

        store.append_message(store.current_id, Message(role=Role.USER, content="birinchi"))
        store.append_message(store.current_id, Message(role=Role.ASSISTANT, content="javob"))
        await persister.flush()

        loaded = await dal.load()
        assert [m.content for m in loaded[0].messages] == ["birinchi", "javob"]
        await persister.close()

    async def test_corrupt_state_starts_fresh(self, db, dal):
        await write_raw(db, "garbage")
        store = ConversationStore()

        await ConversationPersister(dal).restore(store)

        assert len(store.conversations) == 1
        assert store.current.is_empty

    async def test_close_writes_pending_snapshot(self, dal):
        store = ConversationStore()
        persister = ConversationPersister(dal)
        await persister.restore(store)
        persister.attach(store)

        store.append_message(store.current_id, Message(role=Role.USER, content="oxirgi"))
        await persister.close()

        loaded = await dal.load()
        assert loaded[0].messages[0].content == "oxirgi"
