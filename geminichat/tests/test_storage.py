"""
ScopedStore / 컨텍스트 로더 테스트 — 토큰 만료 시 갱신 후 재시도
"""
import asyncio
import time

import pytest
from sqlalchemy import event

from geminichat.core.errors import Unauthenticated
from geminichat.core.security import Caller
from geminichat.core.storage import ScopedStore
from geminichat.models.conversation import Message
from geminichat.service.context_service import load_context, to_dialogue
from conftest import TEST_USER


def _caller(expires_in: int, refresh_token: str | None = "rt-1") -> Caller:
    exp = int(time.time()) + expires_in
    return Caller(subject=TEST_USER, id_token="old-token", claims={"sub": TEST_USER, "exp": exp}, refresh_token=refresh_token)


def test_만료된_자격증명은_갱신_후_재시도(session_factory, identity):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=-60), identity)
            conversation = await store.create_conversation("hello")
            return store, conversation

    store, conversation = asyncio.run(scenario())

    assert identity.refreshed == [TEST_USER]
    assert store.refreshed is True
    assert store.caller.id_token != "old-token"
    assert store.caller.refresh_token == "rt-1"
    assert conversation.user_id == TEST_USER


def test_유효한_자격증명은_갱신하지_않음(session_factory, identity):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=3600), identity)
            await store.list_conversations()
            return store

    store = asyncio.run(scenario())

    assert identity.refreshed == []
    assert store.refreshed is False


def test_갱신하면_열린_조회_트랜잭션을_닫고_새_claims로_다시_시작(session_factory, identity):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=3600), identity)
            begun_with: list[str] = []
            event.listen(session.sync_session, "after_begin", lambda s, t, c: begun_with.append(store.caller.id_token))

            await store.list_conversations()
            open_after_read = session.in_transaction()
            await store.refresh_credential()
            open_after_refresh = session.in_transaction()
            await store.list_conversations()
            return begun_with, open_after_read, open_after_refresh, store.caller.id_token

    begun_with, open_after_read, open_after_refresh, new_token = asyncio.run(scenario())

    assert open_after_read is True
    assert open_after_refresh is False
    assert begun_with == ["old-token", new_token]


def test_갱신_수단이_없으면_401(session_factory):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=-60), identity=None)
            await store.list_conversations()

    with pytest.raises(Unauthenticated):
        asyncio.run(scenario())


def test_컨텍스트_로더는_없는_대화에_빈_리스트(session_factory):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=3600))
            return await load_context(store, "missing")

    assert asyncio.run(scenario()) == []


def test_컨텍스트_로더는_텍스트만_오래된_순(session_factory):
    async def scenario():
        async with session_factory() as session:
            store = ScopedStore(session, _caller(expires_in=3600))
            conversation = await store.create_conversation("ctx")
            await store.add_message(conversation.id, "user", "q1", "text")
            await store.add_message(conversation.id, "assistant", "a1", "text")
            await store.add_message(conversation.id, "user", "what is this?", "image_query")
            await store.add_message(conversation.id, "assistant", "a cat", "text")
            return await load_context(store, conversation.id)

    history = asyncio.run(scenario())
    assert [m.content for m in history] == ["q1", "a1", "a cat"]


def test_역할_매핑():
    messages = [
        Message(role="user", content="hi", message_type="text"),
        Message(role="assistant", content="hello", message_type="text"),
    ]
    assert to_dialogue(messages) == [
        {"role": "user", "parts": [{"text": "hi"}]},
        {"role": "model", "parts": [{"text": "hello"}]},
    ]
