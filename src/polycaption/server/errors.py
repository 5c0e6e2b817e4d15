"""Exception types raised by the gateways and the session store."""


class PolycaptionError(Exception):
  """Base class for errors surfaced to clients as a message or an HTTP response."""

  def __init__(self, message: str):
    super().__init__(message)
    self.message = message


class InvalidAudioPayload(PolycaptionError):
  """An audio chunk could not be decoded into raw bytes."""


class TranscriptionFailure(PolycaptionError):
  """The transcription engine was unreachable, timed out, refused, or sent a bad response."""

  def __init__(self, message: str, status_code: int | None = None):
    super().__init__(message)
    self.status_code = status_code

  def __str__(self) -> str:
    if self.status_code is None:
      return f"Transcription failed: {self.message}"
    return f"Transcription failed ({self.status_code}): {self.message}"


class TranslationFailure(PolycaptionError):
  """The translation engine failed or returned a response that could not be parsed."""

  def __str__(self) -> str:
    return f"Translation failed: {self.message}"


class UnknownSession(PolycaptionError):
  """An entry was appended to a session that does not exist or has completed."""

  def __init__(self, session_id: str, reason: str = "not found"):
    super().__init__(f"Session {session_id} {reason}")
    self.session_id = session_id


class SessionCompletedError(PolycaptionError):
  """A completed session was asked to change."""

  def __init__(self, session_id: str):
    super().__init__(f"Session {session_id} is completed and can no longer be modified")
    self.session_id = session_id


class InvalidStatusTransition(PolycaptionError):
  def __init__(self, session_id: str, current: str, requested: str):
    super().__init__(f"Session {session_id} cannot move from {current} to {requested}")
    self.session_id = session_id
    self.current = current
    self.requested = requested
