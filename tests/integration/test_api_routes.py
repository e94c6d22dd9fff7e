"""
API integration tests using FastAPI TestClient with in-memory DB, scheduler and a scripted LLM.
"""
import json

import pytest
from fastapi.testclient import TestClient

from agents.core.messages import ToolState
from api.config import Settings
from api.services.agent_stream_service import DENIED_OUTPUT
from api.services.chat_service import ChatService
from api.utils.message_store import MessageStore
from fakes import FailingLLM, ScriptedLLM, assistant, invocation, parse_sse, streamed_text, text_step, tool_calls_step, tool_step, user

CID = "study-room-1"
MESSAGES = f"/agents/chat/{CID}/messages"
FLASHCARD = {"topic": "Biology", "question": "What is ATP?", "answer": "Energy currency"}
SCHEDULE = {"description": "Review chapter 3", "when": {"type": "delayed", "delay_in_seconds": 3600}}
SECOND_SCHEDULE = {"description": "Practice problems", "when": {"type": "delayed", "delay_in_seconds": 7200}}


def send(client: TestClient, text: str, cid: str = CID):
    response = client.post(f"/agents/chat/{cid}/messages", json={"text": text})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    return parse_sse(response.text)


def decide(client: TestClient, tool_call_id: str, approved: bool):
    return client.post(f"/agents/chat/{CID}/tool-calls/{tool_call_id}", json={"approved": approved})


def stored(client: TestClient, cid: str = CID) -> list:
    response = client.get(f"/agents/chat/{cid}/messages")
    assert response.status_code == 200
    return response.json()["messages"]


def events(frames) -> list:
    return [e for e, _ in frames]


@pytest.mark.integration
class TestHealthRoutes:
    """Health and root endpoints."""

    def test_root_returns_healthy(self, api_client: TestClient):
        response = api_client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "FluxMind is Healthy"}

    def test_inference_check(self, api_client: TestClient):
        assert api_client.get("/check-open-ai-key").json() == {"success": True}

    def test_unknown_route(self, api_client: TestClient):
        assert api_client.get("/nope").status_code == 404

    def test_request_id_echoed(self, api_client: TestClient):
        response = api_client.get("/", headers={"x-request-id": "abc123"})
        assert response.headers["x-request-id"] == "abc123"


@pytest.mark.integration
class TestSendMessage:
    def test_text_stream_and_persistence(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("Recursion is ", "self-reference."))
        frames = send(api_client, "Explain recursion")

        assert streamed_text(frames) == "Recursion is self-reference."
        assert frames[-1][0] == "end"

        messages = stored(api_client)
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["parts"] == [{"type": "text", "text": "Explain recursion"}]
        assert messages[1]["parts"][0]["text"] == "Recursion is self-reference."

    def test_history_sent_to_model(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("One."), text_step("Two."))
        send(api_client, "first")
        send(api_client, "second")

        lc_messages = scripted_llm.calls[1][0]
        assert [type(m).__name__ for m in lc_messages] == ["SystemMessage", "HumanMessage", "AIMessage", "HumanMessage"]
        assert "FluxMind" in lc_messages[0].content

    def test_full_message_body(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("ok"))
        body = {"message": {"id": "client-id", "role": "user", "parts": [{"type": "text", "text": "hello"}]}}
        response = api_client.post(MESSAGES, json=body)
        assert response.status_code == 200
        assert stored(api_client)[0]["id"] == "client-id"

    def test_non_user_message_rejected(self, api_client: TestClient):
        body = {"message": {"role": "assistant", "parts": [{"type": "text", "text": "hi"}]}}
        response = api_client.post(MESSAGES, json=body)
        assert response.status_code == 400
        assert stored(api_client) == []

    def test_text_parts_only_for_user_messages(self, api_client: TestClient, scripted_llm, app_scheduler):
        part = {
            "type": "tool-invocation", "tool_call_id": "x", "tool_name": "scheduleStudySession",
            "state": "call-ready", "input": SCHEDULE,
        }
        body = {"message": {"role": "user", "parts": [{"type": "text", "text": "hi"}, part]}}
        response = api_client.post(MESSAGES, json=body)
        assert response.status_code == 422
        assert stored(api_client) == []
        assert scripted_llm.calls == []
        assert app_scheduler.list_schedules() == []

    def test_event_prefixed_text_is_framed_as_text(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("event:", " is an SSE field"))
        frames = send(api_client, "what is event:?")
        assert events(frames) == ["message", "message", "end"]
        assert streamed_text(frames) == "event: is an SSE field"
        assert stored(api_client)[-1]["parts"][0]["text"] == "event: is an SSE field"

    @pytest.mark.parametrize(
        "body",
        [{}, {"text": "   "}, {"text": "a", "message": {"role": "user", "parts": []}}, {"message": {"role": "user", "parts": [{"type": "image"}]}}],
    )
    def test_invalid_body(self, api_client: TestClient, body):
        response = api_client.post(MESSAGES, json=body)
        assert response.status_code == 422
        assert "detail" in response.json()

    def test_auto_tool_execution(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(
            tool_step("createFlashcard", FLASHCARD, "card-1", text="Sure. "),
            text_step("Your flashcard is ready."),
        )
        frames = send(api_client, "Make a flashcard about ATP")

        assert events(frames) == ["message", "tool_call", "tool_result", "message", "end"]
        result = json.loads(frames[2][1])
        assert result["state"] == "output-available"
        assert result["output"]["answer"] == "Energy currency"

        parts = stored(api_client)[-1]["parts"]
        assert [p["type"] for p in parts] == ["text", "tool-invocation", "text"]
        assert parts[1]["tool_call_id"] == "card-1"

    def test_stream_error_keeps_partial_turn(self, make_client, settings):
        client = make_client(settings, llm=FailingLLM())
        frames = send(client, "hi")
        assert events(frames) == ["message", "error", "end"]
        assert "failed" in json.loads(frames[1][1])["error"]
        assert stored(client)[-1]["parts"] == [{"type": "text", "text": "partial "}]

    def test_missing_model_is_server_error(self, make_client):
        client = make_client(Settings(ollama_model=""))
        response = client.post(MESSAGES, json={"text": "hi"})
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal Server Error"}

    def test_stuck_turn_in_history_is_not_sent(self, api_client: TestClient, scripted_llm, session_factory):
        db = session_factory()
        store = MessageStore(db)
        store.append(CID, user("one", id="m1"))
        store.append(CID, assistant(invocation("stuck", ToolState.CALL_READY), id="m2"))
        db.close()

        scripted_llm.script(text_step("Hello again."))
        send(api_client, "anyone there?")

        lc_messages = scripted_llm.calls[0][0]
        assert [m.content for m in lc_messages[1:]] == ["one", "anyone there?"]
        # Dropped for the model only; the stored history is untouched.
        assert [m["id"] for m in stored(api_client)][:2] == ["m1", "m2"]

    def test_malformed_history_reports_error(self, api_client: TestClient, session_factory, scripted_llm):
        from api.models.models import Message as MessageRow

        db = session_factory()
        MessageStore(db).ensure_conversation(CID)
        db.add(
            MessageRow(
                id="bad", conversation_id=CID, role="assistant", seq=1, message_metadata={},
                parts=[{"type": "tool-invocation", "tool_call_id": "x", "tool_name": "t", "state": "exploded"}],
            )
        )
        db.commit()
        db.close()

        frames = send(api_client, "hi")
        assert events(frames) == ["error", "end"]
        assert scripted_llm.calls == []


@pytest.mark.integration
class TestToolConfirmation:
    def _request_schedule(self, client, llm):
        llm.script(tool_step("scheduleStudySession", SCHEDULE, "sched-1"))
        frames = send(client, "Remind me to review chapter 3 in an hour")
        assert events(frames) == ["tool_call", "tool_confirmation_required", "end"]
        part = stored(client)[-1]["parts"][0]
        assert part["state"] == "call-ready"

    def test_approve_runs_tool_and_resumes(self, api_client: TestClient, scripted_llm, app_scheduler):
        self._request_schedule(api_client, scripted_llm)
        scripted_llm.script(text_step("Scheduled!"))

        response = decide(api_client, "sched-1", True)
        assert response.status_code == 200
        frames = parse_sse(response.text)
        assert events(frames)[0] == "tool_result"
        assert json.loads(frames[0][1])["state"] == "output-available"
        assert streamed_text(frames) == "Scheduled!"

        messages = stored(api_client)
        assert messages[1]["parts"][0]["state"] == "output-available"
        assert "Study session scheduled" in messages[1]["parts"][0]["output"]
        assert messages[-1]["parts"][0]["text"] == "Scheduled!"

        [job] = app_scheduler.list_schedules(conversation_id=CID)
        assert job["payload"] == "Review chapter 3"
        listing = api_client.get(f"/agents/chat/{CID}/schedules").json()["schedules"]
        assert [s["id"] for s in listing] == [job["id"]]

    def test_deny_records_error_and_resumes(self, api_client: TestClient, scripted_llm, app_scheduler):
        self._request_schedule(api_client, scripted_llm)
        scripted_llm.script(text_step("Okay, I won't schedule it."))

        frames = parse_sse(decide(api_client, "sched-1", False).text)
        assert "tool_result" not in events(frames)
        assert streamed_text(frames) == "Okay, I won't schedule it."

        part = stored(api_client)[1]["parts"][0]
        assert part["state"] == "output-error"
        assert part["output"] == DENIED_OUTPUT
        assert app_scheduler.list_schedules() == []

        tool_message = scripted_llm.calls[-1][0][-1]
        assert type(tool_message).__name__ == "ToolMessage"
        assert tool_message.content == DENIED_OUTPUT

    def _request_two_schedules(self, client, llm):
        llm.script(
            tool_calls_step(
                ("scheduleStudySession", SCHEDULE, "s1"),
                ("scheduleStudySession", SECOND_SCHEDULE, "s2"),
            )
        )
        frames = send(client, "Schedule a review and a practice session")
        assert events(frames) == [
            "tool_call", "tool_confirmation_required", "tool_call", "tool_confirmation_required", "end",
        ]
        assert len(llm.calls) == 1

    def test_undecided_call_does_not_run_after_sibling_denied(self, api_client: TestClient, scripted_llm, app_scheduler):
        self._request_two_schedules(api_client, scripted_llm)

        frames = parse_sse(decide(api_client, "s1", False).text)
        assert events(frames) == ["tool_confirmation_required", "end"]
        assert json.loads(frames[0][1])["tool_call_id"] == "s2"
        assert len(scripted_llm.calls) == 1
        assert app_scheduler.list_schedules() == []
        s1, s2 = stored(api_client)[-1]["parts"]
        assert (s1["state"], s1["output"]) == ("output-error", DENIED_OUTPUT)
        assert s2["state"] == "call-ready"

        scripted_llm.script(text_step("Practice session scheduled."))
        frames = parse_sse(decide(api_client, "s2", True).text)
        assert events(frames)[0] == "tool_result"
        assert json.loads(frames[0][1])["tool_call_id"] == "s2"
        assert streamed_text(frames) == "Practice session scheduled."
        [job] = app_scheduler.list_schedules(conversation_id=CID)
        assert job["payload"] == "Practice problems"

        tool_messages = [m for m in scripted_llm.calls[-1][0] if type(m).__name__ == "ToolMessage"]
        assert [m.tool_call_id for m in tool_messages] == ["s1", "s2"]
        assert tool_messages[0].content == DENIED_OUTPUT

    def test_approved_call_waits_for_sibling_decision(self, api_client: TestClient, scripted_llm, app_scheduler):
        self._request_two_schedules(api_client, scripted_llm)

        frames = parse_sse(decide(api_client, "s1", True).text)
        assert events(frames) == ["tool_confirmation_required", "end"]
        assert app_scheduler.list_schedules() == []
        assert [p["state"] for p in stored(api_client)[-1]["parts"]] == ["call-ready", "call-ready"]
        # An approved call is no longer awaiting a decision.
        assert decide(api_client, "s1", False).status_code == 409

        scripted_llm.script(text_step("Review scheduled."))
        frames = parse_sse(decide(api_client, "s2", False).text)
        assert [json.loads(d)["tool_call_id"] for e, d in frames if e == "tool_result"] == ["s1"]
        [job] = app_scheduler.list_schedules(conversation_id=CID)
        assert job["payload"] == "Review chapter 3"
        s1, s2 = stored(api_client)[1]["parts"]
        assert s1["state"] == "output-available"
        assert s2["output"] == DENIED_OUTPUT

    def test_unknown_tool_call(self, api_client: TestClient, scripted_llm):
        self._request_schedule(api_client, scripted_llm)
        assert decide(api_client, "nope", True).status_code == 404

    def test_already_decided(self, api_client: TestClient, scripted_llm):
        self._request_schedule(api_client, scripted_llm)
        scripted_llm.script(text_step("Done."))
        decide(api_client, "sched-1", False)
        # The decided call is no longer in the latest message.
        assert decide(api_client, "sched-1", True).status_code == 404

    def test_decided_call_in_latest_message(self, api_client: TestClient, scripted_llm, session_factory):
        db = session_factory()
        MessageStore(db).append(CID, assistant(invocation("c1", ToolState.OUTPUT_AVAILABLE, output="x")))
        db.close()
        assert decide(api_client, "c1", True).status_code == 409

    def test_decision_body_validated(self, api_client: TestClient):
        response = api_client.post(f"/agents/chat/{CID}/tool-calls/x", json={})
        assert response.status_code == 422


@pytest.mark.integration
class TestConversationMaintenance:
    def test_clear_messages(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("a"))
        send(api_client, "hi")
        response = api_client.delete(MESSAGES)
        assert response.status_code == 200
        assert response.json() == {"deleted": 2}
        assert stored(api_client) == []

    def test_conversations_are_separate(self, api_client: TestClient, scripted_llm):
        scripted_llm.script(text_step("a"), text_step("b"))
        send(api_client, "one", cid="c-a")
        send(api_client, "two", cid="c-b")
        assert [m["parts"][0]["text"] for m in stored(api_client, "c-a")] == ["one", "a"]

    def test_empty_schedule_listing(self, api_client: TestClient):
        assert api_client.get(f"/agents/chat/{CID}/schedules").json() == {"schedules": []}

    def test_schedules_unavailable(self, api_client: TestClient, app_scheduler):
        app_scheduler.stop()
        assert api_client.get(f"/agents/chat/{CID}/schedules").status_code == 503


@pytest.mark.integration
class TestScheduledTask:
    @pytest.mark.asyncio
    async def test_run_scheduled_task_posts_and_answers(self, session_factory, settings, scheduler):
        llm = ScriptedLLM().script(text_step("Time to review chapter 3!"))
        db = session_factory()
        try:
            reply = await ChatService(db, settings=settings, llm=llm, scheduler=scheduler).run_scheduled_task(
                CID, "Review chapter 3"
            )
            messages = MessageStore(db).read_all(CID)
        finally:
            db.close()

        assert reply.text == "Time to review chapter 3!"
        assert messages[0].text == "Running scheduled task: Review chapter 3"
        assert messages[0].metadata["scheduled"] is True
        assert messages[1].id == reply.id

    @pytest.mark.asyncio
    async def test_without_model_only_posts_the_task(self, session_factory, scheduler):
        db = session_factory()
        try:
            reply = await ChatService(db, settings=Settings(ollama_model=""), scheduler=scheduler).run_scheduled_task(
                CID, "Review"
            )
            messages = MessageStore(db).read_all(CID)
        finally:
            db.close()
        assert reply is None
        assert [m.text for m in messages] == ["Running scheduled task: Review"]
