from flask import current_app
from openai import OpenAI, OpenAIError

from healthlog.errors import AssistantError

SYSTEM_PROMPT = (
    "You are a helpful health and weight-management assistant. "
    "Answer concisely and avoid giving medical diagnoses."
)


def summarize_stats(stats: dict | None) -> str:
    if not stats:
        return "No records have been logged yet."

    lines = [
        f"Records logged: {stats['record_count']}",
        f"Current weight: {stats['current_weight']} kg",
        f"Starting weight: {stats['start_weight']} kg",
        f"Weight lost: {stats['weight_lost']} kg",
        f"Average weight: {stats['average_weight']} kg",
        f"Average diet score: {stats['avg_diet_score']}",
        f"Average water score: {stats['avg_water_score']}",
        f"Average exercise score: {stats['avg_exercise_score']}",
        f"Average mood score: {stats['avg_mood_score']}",
        f"Average sleep score: {stats['avg_sleep_condition']}",
        f"Days with a bowel movement: {stats['bowel_percentage']}%",
    ]
    return "\n".join(lines)


def _client() -> OpenAI:
    api_key = current_app.config.get("LLM_API_KEY")
    if not api_key:
        raise AssistantError("LLM_API_KEY is not configured.")
    return OpenAI(
        api_key=api_key,
        base_url=current_app.config.get("LLM_BASE_URL") or None,
        timeout=current_app.config.get("LLM_TIMEOUT_SECONDS", 60),
    )


def ask_assistant(prompt: str, context: str | None = None) -> str:
    question = (prompt or "").strip()
    if not question:
        raise AssistantError("Enter a question first.")

    content = question
    if context:
        content = f"My recent health tracking summary:\n{context}\n\n{question}"

    client = _client()
    try:
        resp = client.chat.completions.create(
            model=current_app.config.get("LLM_MODEL", "deepseek-chat"),
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
        )
    except OpenAIError as exc:
        current_app.logger.warning("Assistant request failed: %s", exc)
        raise AssistantError(f"Assistant request failed: {exc}") from exc

    if not resp.choices:
        return ""
    return resp.choices[0].message.content or ""
