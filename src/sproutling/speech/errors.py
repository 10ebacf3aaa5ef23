"""Text-to-speech client errors.

Every failure is terminal for the call; retrying is up to the caller.
"""


class SpeechError(Exception):
    """Base error for text-to-speech requests.

    Args:
        message: Human readable description.
        status_code: HTTP status, when a response was received.
        response_body: Response body text, when useful for diagnosis.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class NoAPIKeyError(SpeechError):
    def __init__(self) -> None:
        super().__init__("No ElevenLabs API key configured")


class InvalidEndpointError(SpeechError):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class SpeechNetworkError(SpeechError):
    """The request never produced a response."""

    def __init__(self, cause: Exception):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class SpeechHTTPError(SpeechError):
    def __init__(self, status_code: int, response_body: str | None = None):
        super().__init__(
            f"HTTP error {status_code}: {response_body or 'Unknown error'}",
            status_code=status_code,
            response_body=response_body,
        )


class NoAudioDataError(SpeechError):
    def __init__(self) -> None:
        super().__init__("No audio data received", status_code=200)


class RateLimitedError(SpeechError):
    def __init__(self, response_body: str | None = None):
        super().__init__(
            "Rate limited - too many requests", status_code=429, response_body=response_body
        )


class UnauthorizedError(SpeechError):
    def __init__(self, response_body: str | None = None):
        super().__init__("Invalid API key", status_code=401, response_body=response_body)


class InsufficientCreditsError(SpeechError):
    def __init__(self, response_body: str | None = None):
        super().__init__(
            "Insufficient ElevenLabs credits", status_code=402, response_body=response_body
        )
