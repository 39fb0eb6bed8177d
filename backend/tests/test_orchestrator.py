"""Tests for a full chat turn through the orchestrator."""

import json

import pytest
from sqlmodel import Session, select

from dostify.core.errors import UpstreamServiceError
from dostify.models.conversation import ChatSession
from dostify.models.mood import MoodLog
from dostify.models.planner import Task
from dostify.services.orchestrator import ChatTurnRequest
from tests.conftest import USER_ID, reply, seed_session, stored_messages, test_engine, tool_calls


def _turn(message, session_id="s1", **kwargs):
    return ChatTurnRequest(message=message, session_id=session_id, **kwargs)


def _count(model):
    with Session(test_engine) as session:
        return len(session.exec(select(model)).all())


@pytest.mark.asyncio
async def test_direct_reply_creates_session_and_stores_both_messages(db, orchestrator, gateway):
    gateway.responses = [reply("Hi! How are you feeling today?")]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("hello"))

    assert result.reply == "Hi! How are you feeling today?"
    assert result.tool_results == []
    assert result.session_id == "s1"

    messages = stored_messages()
    assert [(m.sender, m.content) for m in messages] == [
        ("user", "hello"),
        ("assistant", "Hi! How are you feeling today?"),
    ]
    # one call, with every tool offered
    assert len(gateway.calls) == 1
    assert len(gateway.calls[0]["tools"]) == 8


@pytest.mark.asyncio
async def test_first_message_sets_session_title(db, orchestrator, gateway):
    gateway.responses = [reply("ok"), reply("ok again")]
    await orchestrator.handle_turn(db, USER_ID, _turn("Plan my week please"))
    await orchestrator.handle_turn(db, USER_ID, _turn("something else"))

    with Session(test_engine) as session:
        chat = session.exec(select(ChatSession)).one()
        assert chat.title == "Plan my week please"


@pytest.mark.asyncio
async def test_image_message_sent_as_multipart(db, orchestrator, gateway):
    gateway.responses = [reply("Nice photo")]
    await orchestrator.handle_turn(
        db, USER_ID, _turn("what is this?", type="image", image_url="https://example.com/a.png")
    )

    inbound = gateway.calls[0]["messages"][-1]
    assert inbound["content"][1] == {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}}
    stored = stored_messages()[0]
    assert stored.content_type == "image"
    assert stored.image_url == "https://example.com/a.png"


@pytest.mark.asyncio
async def test_log_mood_round_trip(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "log_mood", {"mood": 8})),
        reply("Logged an 8, glad you're feeling good!"),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("log that I feel an 8 today"))

    assert result.reply == "Logged an 8, glad you're feeling good!"
    assert len(result.tool_results) == 1
    assert result.tool_results[0]["success"] is True
    with Session(test_engine) as session:
        logs = session.exec(select(MoodLog)).all()
        assert [(log.user_id, log.mood) for log in logs] == [(USER_ID, 8)]

    # follow-up carries the call and its result, and no tools
    followup = gateway.calls[1]
    assert followup["tools"] is None
    assistant, tool = followup["messages"][-2:]
    assert assistant["role"] == "assistant"
    assert assistant["tool_calls"][0]["id"] == "call_1"
    assert tool["role"] == "tool"
    assert tool["tool_call_id"] == "call_1"
    assert json.loads(tool["content"])["success"] is True

    senders = [m.sender for m in stored_messages()]
    assert senders == ["user", "assistant", "tool", "assistant"]


@pytest.mark.asyncio
async def test_delete_missing_task_still_follows_up(db, orchestrator, gateway):
    with Session(test_engine) as session:
        session.add(Task(user_id=USER_ID, title="Dishes"))
        session.commit()
    gateway.responses = [
        tool_calls(("call_1", "delete_task", {"taskId": "Laundry"})),
        reply("I couldn't find a task called Laundry."),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("delete the task called 'Laundry'"))

    assert result.tool_results[0]["success"] is False
    assert "not found" in result.tool_results[0]["error"]
    assert result.reply == "I couldn't find a task called Laundry."
    assert len(gateway.calls) == 2
    assert _count(Task) == 1


@pytest.mark.asyncio
async def test_tools_run_in_order_without_short_circuit(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(
            ("call_a", "delete_task", {"taskId": "Nope"}),
            ("call_b", "create_task", {"title": "Stretch"}),
            ("call_c", "get_tasks", {}),
        ),
        reply("Done."),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("tidy my planner"))

    assert [r["success"] for r in result.tool_results] == [False, True, True]
    # C ran after B and sees its task
    assert [t["title"] for t in result.tool_results[2]["tasks"]] == ["Stretch"]

    tool_messages = [m for m in stored_messages() if m.sender == "tool"]
    assert [(m.tool_call_id, m.tool_name) for m in tool_messages] == [
        ("call_a", "delete_task"),
        ("call_b", "create_task"),
        ("call_c", "get_tasks"),
    ]


@pytest.mark.asyncio
async def test_every_tool_message_pairs_with_one_earlier_request(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "log_mood", {"mood": 4}), ("call_2", "get_mood_history", {})),
        reply("Noted."),
        tool_calls(("call_3", "get_tasks", {})),
        reply("Here you go."),
    ]
    await orchestrator.handle_turn(db, USER_ID, _turn("log a 4"))
    await orchestrator.handle_turn(db, USER_ID, _turn("what's on my list?"))

    messages = stored_messages()
    for i, msg in enumerate(messages):
        if msg.sender != "tool":
            continue
        matches = [
            call
            for earlier in messages[:i]
            if earlier.sender == "assistant" and earlier.tool_calls
            for call in earlier.tool_calls
            if call["id"] == msg.tool_call_id
        ]
        assert len(matches) == 1


@pytest.mark.asyncio
async def test_malformed_arguments_do_not_stop_siblings(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "log_mood", "{\"mood\": "), ("call_2", "log_mood", {"mood": 6})),
        reply("Logged one of them."),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("log moods"))

    assert result.tool_results[0]["success"] is False
    assert "Could not parse arguments" in result.tool_results[0]["error"]
    assert result.tool_results[1]["success"] is True
    assert _count(MoodLog) == 1


@pytest.mark.asyncio
async def test_first_call_failure_keeps_user_message(db, orchestrator, gateway):
    gateway.responses = [UpstreamServiceError("Language model timed out after 120s")]

    with pytest.raises(UpstreamServiceError) as exc_info:
        await orchestrator.handle_turn(db, USER_ID, _turn("are you there?"))

    assert exc_info.value.partial is False
    assert [(m.sender, m.content) for m in stored_messages()] == [("user", "are you there?")]


@pytest.mark.asyncio
async def test_followup_failure_is_partial_and_keeps_tool_work(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "create_task", {"title": "Journal"})),
        UpstreamServiceError("Language model returned HTTP 503"),
    ]

    with pytest.raises(UpstreamServiceError) as exc_info:
        await orchestrator.handle_turn(db, USER_ID, _turn("add journaling"))

    err = exc_info.value
    assert err.partial is True
    assert "create_task" in err.message
    assert err.tool_results[0]["success"] is True
    assert _count(Task) == 1
    assert [m.sender for m in stored_messages()] == ["user", "assistant", "tool"]


@pytest.mark.asyncio
async def test_empty_followup_reply_is_not_an_error(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "get_tasks", {})),
        reply(None),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("anything due?"))

    assert result.reply == ""
    last = stored_messages()[-1]
    assert last.sender == "assistant"
    assert last.content == ""


@pytest.mark.asyncio
async def test_feedback_tool_targets_messages_before_the_turn(db, orchestrator, gateway):
    seed_session(messages=[("user", "hi"), ("assistant", "hello there")])
    gateway.responses = [
        tool_calls(("call_1", "give_feedback", {"messageIndex": 0, "feedback": 5})),
        reply("Thanks for the rating!"),
    ]

    result = await orchestrator.handle_turn(db, USER_ID, _turn("that last answer was a 5"))

    assert result.tool_results[0]["success"] is True
    rated = [(m.content, m.feedback) for m in stored_messages() if m.feedback is not None]
    assert rated == [("hello there", 5)]


@pytest.mark.asyncio
async def test_history_replays_tool_round_to_the_model(db, orchestrator, gateway):
    gateway.responses = [
        tool_calls(("call_1", "log_mood", {"mood": 7})),
        reply("Logged."),
        reply("You logged a 7 earlier."),
    ]
    await orchestrator.handle_turn(db, USER_ID, _turn("log a 7"))
    await orchestrator.handle_turn(db, USER_ID, _turn("what did I log?"))

    roles = [m["role"] for m in gateway.calls[2]["messages"]]
    assert roles == ["system", "user", "assistant", "tool", "assistant", "user"]
