class BridgeError(Exception):
  """Base class for errors raised by the conference monitoring bridge."""


class ConfigurationError(BridgeError):
  """The monitoring app credentials are missing or unusable."""


class CorrelationMiss(BridgeError):
  """No registered connection exists for the (conference, role) an event refers to."""

  def __init__(self, conference_id: str, role: str) -> None:
    super().__init__(f'No registered {role} connection for conference {conference_id}')
    self.conference_id = conference_id
    self.role = role


class ValidationError(BridgeError):
  """An event or an adapter call is missing a required field or uses an unknown value."""


class BackendReportedFailure(BridgeError):
  """The monitoring backend reported an error code through one of its completion callbacks."""

  def __init__(self, error_code: str, message: str = '') -> None:
    super().__init__(f'{error_code}: {message}')
    self.error_code = error_code
    self.message = message
