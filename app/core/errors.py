"""Error taxonomy for the interview orchestration service."""


class InterviewError(Exception):
    code = "interview_error"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code}] {message}")


class ConfigurationError(InterviewError):
    code = "configuration_error"


class TemplateNotFoundError(ConfigurationError):
    code = "template_not_found"


class SessionNotFoundError(InterviewError):
    code = "session_not_found"


class InvalidTransitionError(InterviewError):
    code = "invalid_transition"


class GenerationError(InterviewError):
    """Language model failed, timed out, or returned unusable text."""

    code = "generation_error"


class VoiceProviderError(InterviewError):
    code = "voice_provider_error"


class AssistantConfigError(InterviewError):
    code = "assistant_config_error"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(", ".join(errors), {"errors": errors})


class IngestError(InterviewError):
    code = "ingest_error"
