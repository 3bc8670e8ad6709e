"""Custom Exceptions for the EchoFlow application."""

class EchoFlowError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(EchoFlowError):
    """Exception raised for errors in configuration loading."""
    pass

class FileSystemError(EchoFlowError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class FormattingError(EchoFlowError):
    """Exception raised when a subtitle file cannot be written."""
    pass

class AudioNormalizationError(EchoFlowError):
    """Exception raised when audio cannot be converted to the upload profile."""
    pass

class NoAudioTrackError(AudioNormalizationError):
    """Exception raised when the input file has no decodable audio stream."""
    pass

class TranscriptionError(EchoFlowError):
    """Exception raised for errors during transcription."""
    pass

class MissingCredentialError(TranscriptionError):
    """Exception raised when no API key was supplied for the provider."""

    def __init__(self, provider: str = ""):
        self.provider = provider
        label = f" for {provider}" if provider else ""
        super().__init__(f"API key is missing{label}. Set it in the configuration file.")

class InvalidResponseError(TranscriptionError):
    """Exception raised when a provider payload matches no expected shape."""
    pass

class UploadFailedError(TranscriptionError):
    """Exception raised when a stage of the upload/activation protocol fails."""
    pass

class FileNotReadyError(UploadFailedError):
    """Exception raised when an uploaded file never became active within the poll bound."""
    pass

class NetworkError(TranscriptionError):
    """Exception raised for transport-level failures (DNS, refused connection, timeouts)."""
    pass

class ProviderError(TranscriptionError):
    """Exception raised when a provider answers with an HTTP error status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"API error ({status_code}): {message}")

class TranscriptionCancelledError(TranscriptionError):
    """Exception raised when a transcription job is cancelled mid-flight."""
    pass
