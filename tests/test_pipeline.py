"""Behavioral tests for the guest message pipeline with in-memory stores."""

import asyncio
import threading
from uuid import uuid4

import pytest

from hostenly.core.errors import PersistenceError
from hostenly.core.pipeline import FALLBACK_REPLY, MessagePipeline
from hostenly.core.quota import LIMIT_REACHED_NOTICE, QuotaGate
from hostenly.core.retrieval import RetrievalAssembler
from hostenly.core.schemas_messaging import (
    Account,
    InboundMessageEvent,
    PipelineState,
    Property,
    PropertyDetails,
)
from tests.fakes.fake_stores import (
    FakeAccountStore,
    FakeCompletion,
    FakeConversationStore,
    FakeDispatcher,
    FakeEmbedder,
    FakeKnowledgeStore,
    FakePropertyStore,
)

PROPERTY_ADDRESS = "+15550001111"
GUEST_ADDRESS = "+15559998888"


def make_account(count: int = 0, limit: int = 100) -> Account:
    return Account(id=uuid4(), email="host@example.com", message_count=count, message_limit=limit)


def make_property(account: Account, **overrides) -> Property:
    fields = {
        "id": uuid4(),
        "account_id": account.id,
        "name": "Seaside Loft",
        "channel_address": PROPERTY_ADDRESS,
        "details": PropertyDetails(check_in_time="3 PM", wifi_password="sunny-days"),
    }
    fields.update(overrides)
    return Property(**fields)


def inbound(body: str = "What time is check in?", sender: str = GUEST_ADDRESS) -> InboundMessageEvent:
    return InboundMessageEvent(
        sender_address=f"whatsapp:{sender}",
        recipient_address=f"whatsapp:{PROPERTY_ADDRESS}",
        body=body,
        display_name="Alex",
    )


class Harness:
    """Pipeline wired to fakes, with handles on every collaborator."""

    def __init__(
        self,
        account: Account | None = None,
        properties: list[Property] | None = None,
        completion: FakeCompletion | None = None,
        dispatcher: FakeDispatcher | None = None,
        conversations: FakeConversationStore | None = None,
        knowledge: FakeKnowledgeStore | None = None,
        history_turns: int = 10,
    ):
        self.account = account or make_account()
        self.prop = make_property(self.account)
        self.accounts = FakeAccountStore([self.account])
        self.properties = FakePropertyStore(properties if properties is not None else [self.prop])
        self.conversations = conversations or FakeConversationStore()
        self.embedder = FakeEmbedder()
        self.knowledge = knowledge or FakeKnowledgeStore()
        self.completion = completion or FakeCompletion()
        self.dispatcher = dispatcher or FakeDispatcher()
        self.pipeline = MessagePipeline(
            properties=self.properties,
            conversations=self.conversations,
            quota=QuotaGate(self.accounts),
            retriever=RetrievalAssembler(self.embedder, self.knowledge),
            completion=self.completion,
            dispatcher=self.dispatcher,
            history_turns=history_turns,
        )

    @property
    def count(self) -> int:
        return self.accounts.accounts[self.account.id].message_count

    def index(self, content: str) -> None:
        self.knowledge.add(self.prop.id, content, self.embedder.embed_text(content))


# =============================================================================
# Scenarios
# =============================================================================


@pytest.mark.asyncio
async def test_admitted_exchange_persists_both_turns_and_dispatches():
    """Account one below its limit is admitted and consumes two units."""
    h = Harness(account=make_account(count=99, limit=100))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.DONE
    assert result.delivered is True
    assert h.count == 101

    messages = h.conversations.list_messages(result.conversation_id)
    assert [(m.content, m.is_from_guest) for m in messages] == [
        ("What time is check in?", True),
        ("Check-in is at 3 PM.", False),
    ]
    assert h.dispatcher.sent == [
        {"from": PROPERTY_ADDRESS, "to": GUEST_ADDRESS, "body": "Check-in is at 3 PM."}
    ]


@pytest.mark.asyncio
async def test_account_at_limit_gets_notice_and_no_writes():
    h = Harness(account=make_account(count=100, limit=100))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.QUOTA_EXCEEDED
    assert result.conversation_id is None
    assert h.conversations.conversations == {}
    assert h.conversations.messages == []
    assert h.count == 100
    assert h.accounts.increments == []
    assert h.completion.calls == []
    assert h.dispatcher.sent == [
        {"from": PROPERTY_ADDRESS, "to": GUEST_ADDRESS, "body": LIMIT_REACHED_NOTICE}
    ]


@pytest.mark.asyncio
async def test_completion_failure_sends_fallback_and_finishes():
    h = Harness(completion=FakeCompletion(fail=True))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.DONE
    assert result.used_fallback is True
    assert result.reply_text == FALLBACK_REPLY

    messages = h.conversations.list_messages(result.conversation_id)
    assert messages[-1].content == FALLBACK_REPLY
    assert messages[-1].is_from_guest is False
    assert h.dispatcher.sent[-1]["body"] == FALLBACK_REPLY
    assert h.count == 2


@pytest.mark.asyncio
async def test_unknown_recipient_is_dropped_without_writes():
    h = Harness(properties=[])

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.PROPERTY_NOT_FOUND
    assert h.conversations.conversations == {}
    assert h.conversations.messages == []
    assert h.accounts.increments == []
    assert h.dispatcher.sent == []


@pytest.mark.asyncio
async def test_inactive_property_is_treated_as_unknown():
    account = make_account()
    inactive = make_property(account, is_active=False)
    h = Harness(account=account, properties=[inactive])

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.PROPERTY_NOT_FOUND
    assert h.dispatcher.sent == []


# =============================================================================
# Degradation and failure paths
# =============================================================================


@pytest.mark.asyncio
async def test_dispatch_failure_keeps_reply_stored():
    h = Harness(dispatcher=FakeDispatcher(fail=True))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.DISPATCH_FAILED
    assert result.delivered is False
    assert "21211" in result.error
    assert result.reply_message_id is not None
    assert len(h.conversations.list_messages(result.conversation_id)) == 2
    assert h.count == 2


@pytest.mark.asyncio
async def test_limit_notice_transport_failure_is_reported():
    h = Harness(account=make_account(count=5, limit=5), dispatcher=FakeDispatcher(fail=True))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.QUOTA_EXCEEDED
    assert result.error is not None
    assert result.receipt is None


@pytest.mark.asyncio
async def test_persistence_failure_propagates_before_consuming_quota():
    conversations = FakeConversationStore()
    conversations.fail_appends = True
    h = Harness(conversations=conversations)

    with pytest.raises(PersistenceError):
        await h.pipeline.handle_inbound(inbound())

    assert h.accounts.increments == []
    assert h.dispatcher.sent == []


@pytest.mark.asyncio
async def test_search_failure_degrades_to_ungrounded_reply():
    h = Harness(knowledge=FakeKnowledgeStore(fail_search=True))

    result = await h.pipeline.handle_inbound(inbound())

    assert result.state == PipelineState.DONE
    assert result.grounded is False
    system_prompt, _ = h.completion.calls[0]
    assert "Here is specific information" not in system_prompt


# =============================================================================
# Grounding and history
# =============================================================================


@pytest.mark.asyncio
async def test_relevant_chunk_grounds_the_prompt():
    h = Harness()
    h.index("WiFi network password: sunny-days")
    h.index("Pool hours are 8am to 10pm")

    result = await h.pipeline.handle_inbound(inbound("what is the wifi password"))

    assert result.grounded is True
    system_prompt, user_turn = h.completion.calls[0]
    assert "WiFi network password: sunny-days" in system_prompt
    assert "Pool hours" not in system_prompt
    assert user_turn.endswith("Guest's latest message: what is the wifi password")


@pytest.mark.asyncio
async def test_other_property_chunks_never_reach_the_prompt():
    h = Harness(knowledge=FakeKnowledgeStore(leaky=True))
    h.knowledge.add(uuid4(), "WiFi password: neighbours-secret", h.embedder.embed_text("wifi password"))

    result = await h.pipeline.handle_inbound(inbound("what is the wifi password"))

    system_prompt, _ = h.completion.calls[0]
    assert "neighbours-secret" not in system_prompt
    assert result.grounded is False


@pytest.mark.asyncio
async def test_history_excludes_message_being_answered():
    h = Harness()
    first = await h.pipeline.handle_inbound(inbound("Is there parking?"))
    await h.pipeline.handle_inbound(inbound("And a pool?"))

    _, user_turn = h.completion.calls[1]
    assert "Guest: Is there parking?\nHost: Check-in is at 3 PM." in user_turn
    assert "Guest: And a pool?" not in user_turn
    assert user_turn.endswith("Guest's latest message: And a pool?")

    second_conversations = {c.id for c in h.conversations.conversations.values()}
    assert second_conversations == {first.conversation_id}


@pytest.mark.asyncio
async def test_history_is_capped_to_most_recent_turns():
    h = Harness(history_turns=2)
    for body in ("one", "two", "three"):
        await h.pipeline.handle_inbound(inbound(body))

    _, user_turn = h.completion.calls[-1]
    history = user_turn.split("\n\n")[0]
    assert history == "Conversation history:\nGuest: two\nHost: Check-in is at 3 PM."


@pytest.mark.asyncio
async def test_separate_guests_get_separate_conversations():
    h = Harness()

    a = await h.pipeline.handle_inbound(inbound(sender="+15550000001"))
    b = await h.pipeline.handle_inbound(inbound(sender="+15550000002"))

    assert a.conversation_id != b.conversation_id
    assert h.count == 4


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.asyncio
async def test_concurrent_first_messages_share_one_conversation():
    conversations = FakeConversationStore(race_barrier=threading.Barrier(2))
    h = Harness(conversations=conversations)

    first, second = await asyncio.gather(
        h.pipeline.handle_inbound(inbound("Hi!")),
        h.pipeline.handle_inbound(inbound("Hello?")),
    )

    assert first.conversation_id == second.conversation_id
    assert len(conversations.conversations) == 1
    assert conversations.create_attempts == 2
    assert len(conversations.messages) == 4
    assert h.count == 4


# =============================================================================
# Manual host messages
# =============================================================================


@pytest.mark.asyncio
async def test_manual_message_is_stored_counted_and_sent():
    h = Harness()
    first = await h.pipeline.handle_inbound(inbound())

    result = await h.pipeline.send_manual_message(first.conversation_id, "I'll leave towels out.")

    assert result.state == PipelineState.DONE
    assert h.count == 3
    assert h.dispatcher.sent[-1] == {
        "from": PROPERTY_ADDRESS,
        "to": GUEST_ADDRESS,
        "body": "I'll leave towels out.",
    }
    last = h.conversations.list_messages(first.conversation_id)[-1]
    assert last.content == "I'll leave towels out."
    assert last.is_from_guest is False
    assert len(h.completion.calls) == 1
