"""Error kinds raised by the clip pipeline. Each carries its HTTP status and a client-safe message."""


class ClipError(Exception):
    status_code = 500
    default_message = "Something went wrong while preparing the clip."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidURLError(ClipError):
    status_code = 400
    default_message = "Invalid YouTube URL. Only official YouTube domains are allowed."


class InvalidTimeRangeError(ClipError):
    status_code = 400
    default_message = "End time must be after start time and within the video."


class SessionExpiredError(ClipError):
    status_code = 410
    default_message = "Video session expired. Please load the video details again."


class StreamLocatorExpiredError(ClipError):
    status_code = 410
    default_message = "The video stream link expired. Please reload the video and try again."


class SourceFileMissingError(ClipError):
    status_code = 404
    default_message = "Source clip expired or invalid. Please fetch the segment again."


class MetadataUnavailableError(ClipError):
    status_code = 502
    default_message = "Failed to fetch video information. Please check the URL and try again."


class OutputMissingError(ClipError):
    default_message = "Processing finished but no output file was produced."


class ProcessError(ClipError):
    """An external tool could not be started or did not succeed."""

    default_message = "External tool failed."

    def __init__(self, message: str | None = None, *, tool: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.tool = tool
        self.stderr = stderr


class ToolLaunchError(ProcessError):
    pass


class ToolExitError(ProcessError):
    def __init__(
        self,
        message: str | None = None,
        *,
        tool: str = "",
        returncode: int = 1,
        stderr: str = "",
    ) -> None:
        super().__init__(message, tool=tool, stderr=stderr)
        self.returncode = returncode


class ToolTimeoutError(ProcessError):
    pass
