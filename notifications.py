import sys
import subprocess

from errors import RetriesExhaustedError

try:
    from plyer import notification as plyer_notification
except Exception:
    plyer_notification = None

APP_NAME = "SecurTimeAutoClock"
FAILURE_HINT = "Please check the terminal output and verify your timecard."


def _escape_osascript(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\"", "\\\"")


def _macos_alert(title: str, message: str) -> bool:
    """Blocking alert the user has to dismiss; False when osascript is unavailable."""
    script = (
        f'tell application "System Events" to display alert "{_escape_osascript(title)}" '
        f'message "{_escape_osascript(message)}" buttons {{"OK"}} default button "OK" as critical'
    )
    try:
        result = subprocess.run(["osascript", "-e", script], check=False,
                                stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError:
        return False
    return result.returncode == 0


def _desktop_notify(title: str, message: str) -> None:
    if plyer_notification is None:
        return
    try:
        plyer_notification.notify(title=title, message=message, app_name=APP_NAME, timeout=10)
    except Exception:
        # No notification backend on this machine; the message is still echoed.
        pass


def notify_user_with_ack(title: str, message: str, require_ack: bool = False) -> None:
    """Show a desktop notification (a blocking alert on macOS when ``require_ack``) and echo it."""
    if not (require_ack and sys.platform == "darwin" and _macos_alert(title, message)):
        _desktop_notify(title, message)
    print(message)


def punch_result_message(result) -> str:
    status = "confirmed by the page" if result.confirmed else "not confirmed by the page"
    return f"Clicked {result.label!r} using {result.strategy} match ({status})."


def notify_punch_result(result) -> None:
    notify_user_with_ack(f"Punch {result.punch_type.value} done", punch_result_message(result))


def notify_punch_failure(punch_type, error: RetriesExhaustedError) -> None:
    """Failures need acknowledging: the timecard may be missing a punch."""
    notify_user_with_ack(
        f"Punch {punch_type.value} failed",
        f"Punch action failed after {error.attempts} attempt(s): {error.last_error}. {FAILURE_HINT}",
        require_ack=True,
    )
