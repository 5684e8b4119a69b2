"""Turn orchestrator.

Requests a structured reply ``{message, action?}`` from the generation
collaborator for one conversational turn. It reads profile and daily data
to personalise the prompt but never mutates anything; all mutation flows
through the action executor.
"""

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

import anthropic
import openai
from pydantic import BaseModel, ConfigDict, ValidationError

from .actions.models import ActionProposal
from .config import (
    DEFAULT_CALORIE_TARGET,
    DEFAULT_PROTEIN_TARGET,
    DEFAULT_WATER_GOAL,
    GENERATION_MAX_TOKENS,
    GENERATION_TEMPERATURE,
    HISTORY_WINDOW,
)
from .conversation.models import Message
from .domain.models import DailyContext, ProfileSnapshot
from .errors import GenerationError
from .llm import ChatMessage, LLMProvider

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
)

_EMBEDDED_ACTION_RE = re.compile(r"\{[\s\S]*\"action\"[\s\S]*\}")

GOAL_DESCRIPTIONS = {
    "lose_weight": "losing weight",
    "gain_muscle": "gaining muscle mass",
    "maintain": "maintaining your current weight",
    "improve_fitness": "improving overall fitness",
}

ACTIVITY_DESCRIPTIONS = {
    "sedentary": "sedentary lifestyle (little to no exercise)",
    "light": "light activity (1-3 days/week)",
    "moderate": "moderate activity (3-5 days/week)",
    "active": "active lifestyle (6-7 days/week)",
    "very_active": "very active lifestyle (intense daily exercise)",
}

DIETARY_DESCRIPTIONS = {
    "vegetarian": "vegetarian diet",
    "vegan": "vegan diet",
    "non_vegetarian": "non-vegetarian diet",
    "flexitarian": "flexitarian diet (mostly plant-based)",
}


class TurnReply(BaseModel):
    """Structured reply for one turn."""

    model_config = ConfigDict(frozen=True)

    message: str
    action: ActionProposal | None = None


def _num(value: float) -> str:
    """Format a number without a trailing ``.0``."""
    return f"{value:g}"


def _percent(value: float, target: float | None) -> str:
    if not target:
        return "0"
    return f"{value / target * 100:.0f}"


def build_context(profile: ProfileSnapshot | None, daily: DailyContext | None) -> str:
    """Render profile and today's progress as prompt context."""
    lines: list[str] = []

    calorie_target = DEFAULT_CALORIE_TARGET
    protein_target = DEFAULT_PROTEIN_TARGET
    water_goal = DEFAULT_WATER_GOAL

    if profile is not None:
        calorie_target = profile.calorie_target or DEFAULT_CALORIE_TARGET
        protein_target = profile.protein_target or DEFAULT_PROTEIN_TARGET
        water_goal = profile.water_goal or DEFAULT_WATER_GOAL

        greeting = f"Hi {profile.name}! " if profile.name else ""
        lines.append(f"{greeting}Here's your personalized profile:")
        lines.append("")

        if profile.age or profile.weight or profile.height:
            lines.append("About You:")
            if profile.name:
                lines.append(f"- Name: {profile.name}")
            if profile.age:
                lines.append(f"- Age: {profile.age} years")
            if profile.weight:
                lines.append(f"- Weight: {_num(profile.weight)}kg")
            if profile.height:
                lines.append(f"- Height: {_num(profile.height)}cm")
            lines.append("")

        lines.append("Your Goals & Preferences:")
        lines.append(f"- Primary Goal: {GOAL_DESCRIPTIONS.get(profile.goal, profile.goal)}")
        lines.append(
            f"- Activity Level: "
            f"{ACTIVITY_DESCRIPTIONS.get(profile.activity_level, profile.activity_level)}"
        )
        lines.append(
            f"- Dietary Preference: "
            f"{DIETARY_DESCRIPTIONS.get(profile.dietary_preference, profile.dietary_preference)}"
        )
        if profile.restrictions:
            lines.append(f"- Dietary Restrictions: {', '.join(profile.restrictions)}")
        lines.append("")

        lines.append("Your Personalized Targets:")
        lines.append(f"- Daily Calorie Target: {_num(calorie_target)} calories")
        lines.append(f"- Daily Protein Target: {_num(protein_target)}g")
        lines.append(f"- Daily Water Goal: {_num(water_goal)}ml")
        if profile.target_carbs:
            lines.append(f"- Daily Carbs Target: {_num(profile.target_carbs)}g")
        if profile.target_fats:
            lines.append(f"- Daily Fats Target: {_num(profile.target_fats)}g")
        lines.append("")

    if daily is not None:
        has_profile = profile is not None
        lines.append("Today's Progress:")
        lines.append(
            f"- Calories: {_num(daily.calories_consumed)} / {_num(calorie_target)} cal "
            f"({_percent(daily.calories_consumed, calorie_target if has_profile else None)}%)"
        )
        lines.append(
            f"- Protein: {_num(daily.protein)}g / {_num(protein_target)}g "
            f"({_percent(daily.protein, protein_target if has_profile else None)}%)"
        )
        lines.append(
            f"- Water: {_num(daily.water_intake)}ml / {_num(water_goal)}ml "
            f"({_percent(daily.water_intake, water_goal if has_profile else None)}%)"
        )
        lines.append(f"- Calories Burned: {_num(daily.calories_burned)} cal")
        lines.append(f"- Meals Logged: {len(daily.meals)}")
        lines.append(f"- Workouts Logged: {len(daily.exercises)}")

        if daily.meals:
            lines.append("")
            lines.append("Recent Meals:")
            for i, meal in enumerate(daily.meals[:3], 1):
                entry = f"{i}. {meal.meal_type or 'meal'}: {_num(meal.calories)} cal, {_num(meal.protein)}g protein"
                if meal.name:
                    entry += f" ({meal.name})"
                lines.append(entry)

        if has_profile:
            insights = []
            if daily.calories_consumed < calorie_target * 0.8:
                insights.append("- You're below your calorie target - consider adding nutrient-dense meals")
            elif daily.calories_consumed > calorie_target * 1.2:
                insights.append("- You're above your calorie target - focus on portion control")
            if daily.protein < protein_target * 0.8:
                insights.append("- Protein intake is below target - add protein-rich foods to your meals")
            if daily.water_intake < water_goal * 0.7:
                insights.append("- Water intake is low - remember to stay hydrated throughout the day")
            if insights:
                lines.append("")
                lines.append("Personalized Insights:")
                lines.extend(insights)

    return "\n".join(lines).strip()


def _reply_from_object(parsed: dict[str, Any], raw: str) -> TurnReply:
    message = parsed.get("message") or parsed.get("content")
    if message is not None and not isinstance(message, str):
        raise GenerationError(f"Reply message is not text: {type(message).__name__}")

    action_obj = parsed.get("action")
    if not action_obj:
        return TurnReply(message=message or raw)

    try:
        action = ActionProposal.model_validate(action_obj)
    except ValidationError as e:
        raise GenerationError(f"Malformed action in reply: {e}") from e

    if not action.is_actionable:
        return TurnReply(message=message or raw)
    return TurnReply(message=message or "Done!", action=action)


def parse_reply(content: str) -> TurnReply:
    """Parse generated text into a structured reply.

    Strict JSON is tried first, then a JSON object with an ``action`` key
    embedded in prose. Plain text without JSON becomes a message with no
    action.

    Raises:
        GenerationError: If the reply is empty, its message is not text or
            its action is malformed
    """
    if not content or not content.strip():
        raise GenerationError("Empty reply from generation collaborator")

    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, dict):
        return _reply_from_object(parsed, content)
    if parsed is not None:
        raise GenerationError(f"Reply is JSON but not an object: {type(parsed).__name__}")

    match = _EMBEDDED_ACTION_RE.search(content)
    if match:
        try:
            embedded = json.loads(match.group(0))
        except json.JSONDecodeError:
            embedded = None
        if isinstance(embedded, dict):
            reply = _reply_from_object(embedded, content)
            if reply.action is not None and not embedded.get("message"):
                remainder = content.replace(match.group(0), "").strip()
                return TurnReply(message=remainder or content, action=reply.action)
            return reply

    return TurnReply(message=content)


class TurnOrchestrator:
    """Builds the prompt for a turn and parses the structured reply.

    Hidden design decisions:
    - Prompt template and personalised context format
    - History window sent to the provider
    - Reply parsing and malformed-output detection
    """

    def __init__(
        self,
        llm: LLMProvider,
        system_prompt: str | None = None,
        history_window: int = HISTORY_WINDOW,
        temperature: float = GENERATION_TEMPERATURE,
        max_tokens: int = GENERATION_MAX_TOKENS
    ):
        """Initialize the orchestrator.

        Args:
            llm: LLM provider used for generation
            system_prompt: Optional custom system prompt (or loaded from prompts/assistant.txt)
            history_window: Number of most recent messages sent to the provider
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
        """
        self._llm = llm
        if system_prompt is None:
            from .prompts import get_assistant_prompt
            system_prompt = get_assistant_prompt()
        self._system_prompt = system_prompt
        self._history_window = history_window
        self._temperature = temperature
        self._max_tokens = max_tokens

    def build_messages(
        self,
        history: Sequence[Message],
        profile: ProfileSnapshot | None,
        daily: DailyContext | None,
        image_url: str | None = None
    ) -> list[ChatMessage]:
        """Assemble provider messages for a turn.

        The image reference is attached to the most recent user message.
        """
        context = build_context(profile, daily)
        system = self._system_prompt.replace("{context}", context)

        window = list(history)[-self._history_window:]
        last_user_index = max(
            (i for i, m in enumerate(window) if m.role == "user"),
            default=None
        )

        messages = [ChatMessage(role="system", content=system)]
        for i, msg in enumerate(window):
            image = None
            if msg.role == "user":
                image = image_url if i == last_user_index and image_url else None
            messages.append(ChatMessage(role=msg.role, content=msg.content, image_url=image))
        return messages

    async def reply(
        self,
        history: Sequence[Message],
        profile: ProfileSnapshot | None,
        daily: DailyContext | None,
        image_url: str | None = None,
        user_id: str | None = None
    ) -> TurnReply:
        """Request the assistant's reply for the latest user message.

        Args:
            history: Full ordered message history, ending with the user turn
            profile: User profile snapshot
            daily: Most recent daily aggregate
            image_url: Optional image attached to the user turn
            user_id: Requesting user (forwarded to the provider for abuse tracking)

        Returns:
            TurnReply with message text and an optional action proposal

        Raises:
            GenerationError: If the provider fails or the reply is malformed
        """
        messages = self.build_messages(history, profile, daily, image_url)
        extra: dict[str, Any] = {}
        if user_id and self._llm.accepts_user_id:
            extra["user"] = user_id

        try:
            response = await self._llm.chat_completion(
                messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                json_mode=True,
                **extra
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Generation temporarily unavailable: %s", e)
            raise GenerationError(f"Generation unavailable: {e}", retryable=True) from e
        except Exception as e:
            logger.error("Generation failed: %s", e)
            raise GenerationError(f"Generation failed: {e}") from e

        reply = parse_reply(response.content)
        logger.debug(
            "Reply from %s: action=%s",
            response.model,
            reply.action.type.value if reply.action else None
        )
        return reply
