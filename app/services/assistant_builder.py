"""Build and validate the transient voice-assistant configuration sent to Vapi.

The provider answers a malformed assistant with a bare 400, so the config is
checked locally before it leaves the process.
"""

import re

import structlog

from app.core.config import Settings
from app.core.errors import AssistantConfigError
from app.models.template import InterviewTemplate
from app.services import timing
from app.services.questions import question_texts

logger = structlog.get_logger()

DEFAULT_VOICE_PROVIDER = "11labs"
DEFAULT_VOICE_ID = "pNInz6obpgDQGcFmaJgB"

MAX_NAME_CHARS = 40
MAX_ANALYSIS_PROMPT_CHARS = 1000
MAX_DURATION_SECONDS = 7200

SUPPORTED_OPENAI_MODELS = ("gpt-4o-mini", "gpt-4o", "gpt-4", "gpt-3.5-turbo")
SUPPORTED_VOICE_PROVIDERS = ("11labs", "azure", "playht", "rime", "neets", "openai")
SUPPORTED_TRANSCRIBERS = ("deepgram", "assembly", "azure")
SUPPORTED_DEEPGRAM_MODELS = ("nova-2", "nova", "enhanced", "base")

_ELEVENLABS_VOICE_ID = re.compile(r"^[a-zA-Z0-9]{20}$")

END_CALL_MESSAGE = (
    "Thank you for your time today. We'll be in touch with next steps soon. Have a great day!"
)
END_CALL_PHRASES = [
    "goodbye",
    "end interview",
    "that concludes our interview",
    "thank you for your time",
]

SUMMARY_PROMPT = """Analyze this interview transcript. Create a JSON array of question-answer pairs.
For each pair include: "question" (string), "answer" (string), "score" (number 1-10), "evaluation" (brief assessment).
Format: [{"question": "...", "answer": "...", "score": 8, "evaluation": "..."}]
Focus on key questions and responses. Be concise."""

STRUCTURED_DATA_PROMPT = """Extract structured interview data. Include overall score (0-100), category scores, and key strengths/weaknesses.
Be objective and data-focused."""

STRUCTURED_DATA_SCHEMA = {
    "type": "object",
    "properties": {
        "overallScore": {"type": "number", "minimum": 0, "maximum": 100},
        "communication": {"type": "number", "minimum": 0, "maximum": 100},
        "technical": {"type": "number", "minimum": 0, "maximum": 100},
        "experience": {"type": "number", "minimum": 0, "maximum": 100},
        "culturalFit": {"type": "number", "minimum": 0, "maximum": 100},
        "recommendation": {"type": "string", "enum": ["hire", "no-hire", "maybe"]},
        "strengths": {"type": "array", "items": {"type": "string"}},
        "weaknesses": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["overallScore", "recommendation"],
}


def webhook_url(settings: Settings, session_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{settings.API_V1_PREFIX}/webhooks/vapi/{session_id}"


def success_evaluation_prompt(position: str) -> str:
    return (
        f"Evaluate interview for {position}. Rate: Communication (25%), Technical Skills (30%), "
        "Experience (25%), Cultural Fit (20%).\n"
        "Score each 0-100. Provide hiring recommendation (hire/no hire) with brief reasoning.\n"
        'Format: {"overall": 85, "communication": 90, "technical": 80, "experience": 85, '
        '"fit": 90, "recommendation": "hire", "reason": "..."}'
    )


def build_system_prompt(
    template: InterviewTemplate, position: str, questions: list[str], duration_minutes: int
) -> str:
    questions_list = (
        "\n".join(f"{i + 1}. {q}" for i, q in enumerate(questions))
        if questions
        else "Ask relevant questions for the position based on best practices"
    )

    details = [f"**Template: {template.title}**"]
    if template.description:
        details.append(f"**Description:** {template.description}")
    if template.category:
        details.append(f"**Category:** {template.category}")
    if template.difficulty:
        details.append(f"**Difficulty:** {template.difficulty}")

    prompt = f"""You are an expert AI interviewer conducting a professional job interview for the position: {position}.

**Your Role:**
- Conduct a structured yet conversational interview
- Ask insightful follow-up questions
- Maintain a professional but friendly tone

**CONVERSATION FLOW:**
1. Start with a warm greeting and position overview
2. When the candidate confirms readiness, begin the substantive interview
3. Do not end the call when they say they are ready; that means START the interview
4. Ask the questions below in order, then follow up where time allows

{chr(10).join(details)}"""

    if template.instruction:
        prompt += f"\n\n**SPECIFIC INSTRUCTIONS:**\n{template.instruction}"

    prompt += f"""

**QUESTIONS TO COVER:**
{questions_list}

**TIMING:**
- The interview lasts {duration_minutes} minutes
- When about 90% of the time has passed, or 3 minutes remain, stop asking new questions
- Then thank the candidate, explain that the team will follow up with next steps, and say goodbye
- Never start a new topic in the last 2 minutes"""

    return prompt


def build_voice_config(provider: str | None, voice_id: str | None) -> dict:
    """Use the configured voice only when both fields are usable; otherwise the default pair."""
    if provider and provider.strip() and voice_id and voice_id.strip():
        provider, voice_id = provider.strip(), voice_id.strip()
    else:
        logger.info("voice_config_defaulted", provider=provider, voice_id=voice_id)
        provider, voice_id = DEFAULT_VOICE_PROVIDER, DEFAULT_VOICE_ID

    return {
        "provider": provider,
        "voiceId": voice_id,
        "stability": 0.6,
        "similarityBoost": 0.9,
        "style": 0.2,
        "useSpeakerBoost": True,
    }


def build_first_message(
    candidate_name: str, position: str, category: str | None, duration_minutes: int
) -> str:
    return (
        f"Hello {candidate_name}! Welcome to your interview for the {position} position. "
        "I'm your AI interviewer today.\n\n"
        f"I'll be conducting a {category or 'professional'} interview that should take about "
        f"{duration_minutes} minutes. I'll ask you questions to learn more about your background "
        "and experience.\n\nAre you ready to begin?"
    )


def build_assistant_config(
    template: InterviewTemplate,
    session_id: str,
    candidate_name: str,
    position: str,
    settings: Settings,
) -> dict:
    duration = timing.effective_duration(
        template.duration, settings.DEFAULT_INTERVIEW_DURATION_MINUTES
    )
    questions = question_texts(template.questions)

    config = {
        "name": f"Interview: {candidate_name} - {position}"[:MAX_NAME_CHARS],
        "model": {
            "provider": settings.VAPI_MODEL_PROVIDER,
            "model": settings.VAPI_MODEL,
            "temperature": 0.1,
            "messages": [
                {
                    "role": "system",
                    "content": build_system_prompt(template, position, questions, duration),
                }
            ],
        },
        "voice": build_voice_config(settings.VAPI_VOICE_PROVIDER, settings.VAPI_VOICE_ID),
        "transcriber": {
            "provider": "deepgram",
            "model": "nova-2",
            "language": settings.VAPI_LANGUAGE or "en-US",
        },
        "firstMessage": build_first_message(candidate_name, position, template.category, duration),
        "endCallMessage": END_CALL_MESSAGE,
        "endCallPhrases": list(END_CALL_PHRASES),
        "maxDurationSeconds": timing.hard_ceiling_seconds(duration, settings.DURATION_GRACE_SECONDS),
        "server": {"url": webhook_url(settings, session_id)},
        "analysisPlan": {
            "summaryPlan": {
                "enabled": True,
                "messages": [{"role": "system", "content": SUMMARY_PROMPT}],
                "timeoutSeconds": 30,
            },
            "successEvaluationPlan": {
                "enabled": True,
                "messages": [{"role": "system", "content": success_evaluation_prompt(position)}],
                "timeoutSeconds": 30,
                "rubric": "NumericScale",
            },
            "structuredDataPlan": {
                "enabled": True,
                "messages": [{"role": "system", "content": STRUCTURED_DATA_PROMPT}],
                "schema": STRUCTURED_DATA_SCHEMA,
                "timeoutSeconds": 30,
            },
        },
        "metadata": {"sessionId": session_id},
    }

    errors = validate_assistant_config(config, settings.MAX_CALL_DURATION_SECONDS)
    if errors:
        logger.error("assistant_config_invalid", session_id=session_id, errors=errors)
        raise AssistantConfigError(errors)
    return config


def validate_assistant_config(config: dict, max_duration_seconds: int = MAX_DURATION_SECONDS) -> list[str]:
    """Return every problem found; an empty list means the config is valid."""
    errors: list[str] = []

    name = config.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Assistant name is required")
    elif len(name) > MAX_NAME_CHARS:
        errors.append(f"Assistant name must be {MAX_NAME_CHARS} characters or less")

    model = config.get("model") or {}
    if not isinstance(model.get("provider"), str) or not model.get("provider"):
        errors.append("Model provider is required")
    if not isinstance(model.get("model"), str) or not model.get("model"):
        errors.append("Model name is required")
    elif model.get("provider") == "openai" and model["model"] not in SUPPORTED_OPENAI_MODELS:
        errors.append(f"Unsupported OpenAI model: {model['model']}")

    messages = model.get("messages")
    if not isinstance(messages, list) or not messages:
        errors.append("Model messages must contain at least one message")
    else:
        for i, message in enumerate(messages):
            if not isinstance(message.get("role"), str) or not message.get("role"):
                errors.append(f"Message {i}: role is required")
            content = message.get("content")
            if not isinstance(content, str) or not content.strip():
                errors.append(f"Message {i}: content is required")

    voice = config.get("voice") or {}
    voice_provider = voice.get("provider")
    voice_id = voice.get("voiceId")
    if not isinstance(voice_provider, str) or not voice_provider.strip():
        errors.append("Voice provider is required")
    elif voice_provider.lower().strip() not in SUPPORTED_VOICE_PROVIDERS:
        errors.append(f"Unsupported voice provider: {voice_provider}")
    if not isinstance(voice_id, str) or not voice_id.strip():
        errors.append("Voice ID is required")
    elif voice_provider == "11labs" and not _ELEVENLABS_VOICE_ID.match(voice_id):
        errors.append(f"Invalid 11labs voice ID: {voice_id}")

    transcriber = config.get("transcriber") or {}
    transcriber_provider = transcriber.get("provider")
    if not isinstance(transcriber_provider, str) or not transcriber_provider:
        errors.append("Transcriber provider is required")
    elif transcriber_provider.lower() not in SUPPORTED_TRANSCRIBERS:
        errors.append(f"Unsupported transcriber provider: {transcriber_provider}")
    transcriber_model = transcriber.get("model")
    if not isinstance(transcriber_model, str) or not transcriber_model:
        errors.append("Transcriber model is required")
    elif transcriber_provider == "deepgram" and transcriber_model not in SUPPORTED_DEEPGRAM_MODELS:
        errors.append(f"Unsupported Deepgram model: {transcriber_model}")

    server = config.get("server")
    if server is not None:
        url = server.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            errors.append(f"Invalid webhook URL: {url!r}")

    plan = config.get("analysisPlan") or {}
    for key, label in (
        ("summaryPlan", "Summary"),
        ("successEvaluationPlan", "Success evaluation"),
        ("structuredDataPlan", "Structured data"),
    ):
        plan_messages = (plan.get(key) or {}).get("messages") or []
        text = plan_messages[0].get("content") if plan_messages else None
        if text and len(text) > MAX_ANALYSIS_PROMPT_CHARS:
            errors.append(f"{label} prompt too long: {len(text)} chars (max {MAX_ANALYSIS_PROMPT_CHARS})")

    duration = config.get("maxDurationSeconds")
    if not isinstance(duration, (int, float)) or isinstance(duration, bool) or duration <= 0:
        errors.append("Max duration must be a positive number")
    elif duration > max_duration_seconds:
        errors.append(f"Max duration cannot exceed {max_duration_seconds} seconds")

    return errors
