"""Error taxonomy shared by the chat and live capture pipelines."""


class AssistantError(Exception):
    """Base class for failures surfaced to the user as a toast or status."""


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class PermissionDeniedError(AssistantError):
    """Camera or microphone access was refused."""


class DeviceUnavailableError(AssistantError):
    """No usable camera or microphone was found."""


class NetworkFailure(AssistantError):
    """Transport or HTTP-level failure talking to the remote API."""


class MalformedResponse(AssistantError):
    """The remote API answered without the fields we rely on."""


class EmptyTranscriptError(AssistantError):
    """Transcription produced no usable speech."""


class UserCancelled(AssistantError):
    """The user stopped an in-flight request."""


class TurnInProgressError(AssistantError):
    """A new turn was submitted while the previous one is still in flight."""
