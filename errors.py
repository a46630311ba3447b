class ClockError(Exception):
    """Base class for every failure raised by the clock flow."""


class ConfigError(ClockError):
    pass


class BrowserLaunchError(ClockError):
    pass


class LoginError(ClockError):
    pass


class PageStateError(ClockError):
    pass


class ButtonNotFoundError(ClockError):
    def __init__(self, action_label: str, labels, hint: str = ""):
        self.action_label = action_label
        self.labels = list(labels)
        message = f'Could not click button "{action_label}". Available buttons: {", ".join(self.labels)}'
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class RetriesExhaustedError(ClockError):
    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"All {attempts} attempts failed. Last error: {type(last_error).__name__}: {last_error}")
