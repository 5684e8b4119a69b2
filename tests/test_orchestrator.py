"""Unit tests for reply parsing, prompt context and the turn orchestrator."""
import json
from datetime import date

import pytest
from conftest import FakeLLM, make_reply
from hypothesis import given
from hypothesis import strategies as st

from nutriscope.actions import ActionType
from nutriscope.conversation import Message
from nutriscope.domain.models import DailyContext, MealEntry, ProfileSnapshot
from nutriscope.errors import GenerationError
from nutriscope.orchestrator import TurnOrchestrator, build_context, parse_reply
from nutriscope.prompts import clear_cache, get_assistant_prompt, load_prompt

PROMPT = "You are a test assistant.\n{context}"


class TestParseReply:
    """Tests for parse_reply."""

    def test_strict_json_with_action(self):
        content = json.dumps({
            "message": "Logged your breakfast!",
            "action": {"type": "log_meal", "data": {"calories": 320}},
        })

        reply = parse_reply(content)

        assert reply.message == "Logged your breakfast!"
        assert reply.action.type == ActionType.LOG_MEAL
        assert reply.action.data == {"calories": 320}

    def test_none_action_is_dropped(self):
        reply = parse_reply(json.dumps({"message": "Hello!", "action": {"type": "none"}}))
        assert reply.message == "Hello!"
        assert reply.action is None

    def test_missing_message_with_action(self):
        reply = parse_reply(json.dumps({"action": {"type": "log_water", "data": {"water_amount": 250}}}))
        assert reply.message == "Done!"
        assert reply.action.type == ActionType.LOG_WATER

    def test_plain_text(self):
        """Test that prose without JSON is a message with no action."""
        reply = parse_reply("Protein helps with muscle recovery.")
        assert reply.message == "Protein helps with muscle recovery."
        assert reply.action is None

    def test_embedded_action(self):
        """Test that an action object embedded in prose is extracted."""
        content = (
            'Sure, logging that now. '
            '{"action": {"type": "log_water", "data": {"water_amount": 500}}}'
        )

        reply = parse_reply(content)

        assert reply.action.type == ActionType.LOG_WATER
        assert reply.message == "Sure, logging that now."

    def test_confirmation_alias(self):
        reply = parse_reply(json.dumps({
            "message": "Shall I log this?",
            "action": {"type": "log_meal_with_confirmation", "data": {"calories": 500},
                       "requires_confirmation": True},
        }))
        assert reply.action.type == ActionType.LOG_MEAL
        assert reply.action.requires_confirmation

    def test_unknown_action_type_raises(self):
        with pytest.raises(GenerationError):
            parse_reply(json.dumps({"message": "ok", "action": {"type": "drop_tables"}}))

    def test_non_object_json_raises(self):
        with pytest.raises(GenerationError):
            parse_reply("[1, 2, 3]")

    @pytest.mark.parametrize("message", [123, ["a"], {"text": "hi"}])
    def test_non_text_message_raises(self, message):
        """Test that a message field that is not a string is malformed output."""
        with pytest.raises(GenerationError):
            parse_reply(json.dumps({"message": message}))

    def test_non_text_message_with_action_raises(self):
        with pytest.raises(GenerationError):
            parse_reply(json.dumps({
                "message": 42,
                "action": {"type": "log_water", "data": {"water_amount": 250}},
            }))

    @given(st.text(alphabet=" \t\n", max_size=5))
    def test_blank_reply_raises(self, content: str):
        """Property test: an empty reply is a generation failure."""
        with pytest.raises(GenerationError):
            parse_reply(content)


class TestBuildContext:
    """Tests for build_context."""

    def test_empty_without_profile_or_daily(self):
        assert build_context(None, None) == ""

    def test_profile_targets(self):
        profile = ProfileSnapshot(name="Sam", goal="gain_muscle", calorie_target=2500)

        context = build_context(profile, None)

        assert "Hi Sam!" in context
        assert "gaining muscle mass" in context
        assert "Daily Calorie Target: 2500 calories" in context
        assert "Daily Protein Target: 150g" in context

    def test_daily_progress(self):
        daily = DailyContext(
            date=date(2025, 3, 14),
            calories_consumed=1000,
            protein=40,
            water_intake=500,
            meals=[MealEntry(user_id="u", date=date(2025, 3, 14), meal_type="breakfast",
                             name="Oats", calories=350, protein=12)],
        )

        context = build_context(ProfileSnapshot(), daily)

        assert "Calories: 1000 / 2000 cal (50%)" in context
        assert "1. breakfast: 350 cal, 12g protein (Oats)" in context
        assert "Water intake is low" in context


class TestTurnOrchestrator:
    """Tests for TurnOrchestrator."""

    def _history(self, *texts: str) -> list[Message]:
        history = [Message(role="assistant", content="Hi!")]
        for i, text in enumerate(texts):
            history.append(Message(role="user", content=text))
            if i < len(texts) - 1:
                history.append(Message(role="assistant", content=f"reply {i}"))
        return history

    @pytest.mark.asyncio
    async def test_reply_requests_json(self):
        llm = FakeLLM(make_reply("Logged!", {"type": "log_water", "data": {"water_amount": 250}}))
        orchestrator = TurnOrchestrator(llm, system_prompt=PROMPT)

        reply = await orchestrator.reply(self._history("I drank a glass of water"), None, None)

        assert reply.action.type == ActionType.LOG_WATER
        call = llm.calls[0]
        assert call["json_mode"] is True
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 1500
        assert "user" not in call

    @pytest.mark.asyncio
    async def test_system_prompt_gets_context(self):
        llm = FakeLLM(make_reply("Hi"))
        orchestrator = TurnOrchestrator(llm, system_prompt=PROMPT)

        await orchestrator.reply(self._history("hello"), ProfileSnapshot(name="Ana"), None)

        system = llm.calls[0]["messages"][0]
        assert system.role == "system"
        assert "Hi Ana!" in system.content
        assert "{context}" not in system.content

    def test_image_goes_on_last_user_message(self):
        orchestrator = TurnOrchestrator(FakeLLM(), system_prompt=PROMPT)

        messages = orchestrator.build_messages(
            self._history("first", "what is this?"), None, None, image_url="https://img/1.jpg"
        )

        user_messages = [m for m in messages if m.role == "user"]
        assert user_messages[-1].image_url == "https://img/1.jpg"
        assert all(m.image_url is None for m in user_messages[:-1])

    def test_history_window(self):
        orchestrator = TurnOrchestrator(FakeLLM(), system_prompt=PROMPT, history_window=3)

        messages = orchestrator.build_messages(self._history("a", "b", "c", "d"), None, None)

        assert len(messages) == 4
        assert messages[-1].content == "d"

    @pytest.mark.asyncio
    async def test_provider_failure_raises_generation_error(self):
        orchestrator = TurnOrchestrator(FakeLLM(RuntimeError("500 from upstream")), system_prompt=PROMPT)

        with pytest.raises(GenerationError) as exc_info:
            await orchestrator.reply(self._history("hi"), None, None)

        assert not exc_info.value.is_retryable()
        assert exc_info.value.user_message == "Sorry, I encountered an error. Please try again."

    @pytest.mark.asyncio
    async def test_malformed_action_raises(self):
        llm = FakeLLM({"message": "ok", "action": {"type": "log_meal", "data": "not an object"}})
        orchestrator = TurnOrchestrator(llm, system_prompt=PROMPT)

        with pytest.raises(GenerationError):
            await orchestrator.reply(self._history("hi"), None, None)

    @pytest.mark.asyncio
    async def test_user_id_forwarded_when_supported(self):
        llm = FakeLLM(make_reply("Hi"), make_reply("Hi"))
        orchestrator = TurnOrchestrator(llm, system_prompt=PROMPT)

        await orchestrator.reply(self._history("hi"), None, None, user_id="user-1")
        llm.accepts_user_id = True
        await orchestrator.reply(self._history("hi"), None, None, user_id="user-1")

        assert "user" not in llm.calls[0]
        assert llm.calls[1]["user"] == "user-1"


class TestPrompts:
    """Tests for prompt loading."""

    def test_packaged_prompt_has_context_slot(self):
        clear_cache()
        assert "{context}" in get_assistant_prompt()

    @pytest.mark.asyncio
    async def test_working_directory_override(self, tmp_path, monkeypatch):
        """Test that ./prompts/assistant.txt replaces the packaged prompt."""
        (tmp_path / "prompts").mkdir()
        (tmp_path / "prompts" / "assistant.txt").write_text("Custom coach.\n{context}")
        monkeypatch.chdir(tmp_path)
        clear_cache()
        try:
            llm = FakeLLM(make_reply("Hi"))
            await TurnOrchestrator(llm).reply([Message(role="user", content="hi")], None, None)
        finally:
            clear_cache()

        assert llm.calls[0]["messages"][0].content.startswith("Custom coach.")

    def test_missing_prompt(self):
        with pytest.raises(FileNotFoundError):
            load_prompt("does_not_exist")
