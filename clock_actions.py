import json
import time
from dataclasses import dataclass

from selenium.common.exceptions import WebDriverException

from browser_utils import AppContext
import browser_utils
import selector_defs as selectors
from errors import ButtonNotFoundError, PageStateError
from login_flow import perform_login
from page_state import PageAdapter, PagePhase, PageState, PageSnapshot, SecurTimeAdapter, take_snapshot
from punch_schedule import PunchType
from settings import Credentials


@dataclass(frozen=True)
class PunchResult:
    punch_type: PunchType
    label: str
    strategy: str
    confirmed: bool


def _adapter(ctx: AppContext) -> PageAdapter:
    if ctx.adapter is None:
        ctx.adapter = SecurTimeAdapter()
    return ctx.adapter


def ensure_ready(ctx: AppContext, credentials: Credentials):
    """Check the page until a punch button is on screen, logging in or navigating as needed.

    Returns the ``(snapshot, state)`` pair of the first ready check.
    """
    adapter = _adapter(ctx)
    config = ctx.config
    max_attempts = config.max_page_checks

    for attempt in range(1, max_attempts + 1):
        ctx.logger.info(f"Page check attempt {attempt}/{max_attempts}")
        browser_utils.accept_open_dialog(ctx)
        snapshot = take_snapshot(ctx)
        state = adapter.classify(snapshot)
        ctx.logger.debug(f"Page state: {json.dumps(state.as_dict())}")
        ctx.logger.info(f"Available buttons: {', '.join(snapshot.labels)}")
        browser_utils.dump_artifacts(ctx, f"page-state-attempt-{attempt}")

        phase = state.phase
        if phase is PagePhase.NEEDS_LOGIN:
            ctx.logger.info("Detected login page - performing login...")
            perform_login(ctx, credentials)
            time.sleep(config.settle_delay)
        elif phase is PagePhase.READY:
            ctx.logger.info("Page is ready for punching!")
            return snapshot, state
        elif phase is PagePhase.LOADING:
            ctx.logger.info("On welcome page but no punch buttons visible, waiting...")
            time.sleep(config.settle_delay)
        else:
            ctx.logger.info("Not on correct page, attempting navigation to welcome...")
            try:
                ctx.driver.get(config.landing_url)
                time.sleep(config.step_delay)
            except WebDriverException as e:
                ctx.logger.warning(f"Navigation failed: {e}")

    raise PageStateError(f"Could not get to the correct page state after {max_attempts} attempts")


def _not_found_hint(state: PageState, punch_type: PunchType) -> str:
    offers_opposite = state.has_punch_out if punch_type is PunchType.IN else state.has_punch_in
    if offers_opposite:
        return f"page only offers {punch_type.opposite.label}; already clocked {punch_type.word.lower()}?"
    return ""


def click_punch_button(ctx: AppContext, snapshot: PageSnapshot, state: PageState, punch_type: PunchType):
    match = _adapter(ctx).resolve(snapshot, punch_type)
    if match is None:
        raise ButtonNotFoundError(punch_type.label, snapshot.labels, _not_found_hint(state, punch_type))
    button = snapshot.buttons[match.index]
    ctx.logger.debug(f"Matched button {match.label!r} using {match.strategy} method")
    if not browser_utils.safe_click(ctx, button.element):
        raise ButtonNotFoundError(punch_type.label, snapshot.labels, f"{match.label!r} could not be clicked")
    ctx.logger.info(f"Clicked {punch_type.label} button using {match.strategy} method")
    return match


def page_reports_success(ctx: AppContext) -> bool:
    try:
        body = ctx.driver.execute_script(selectors.BODY_TEXT_SCRIPT) or ""
    except WebDriverException:
        return False
    return selectors.SUCCESS_TEXT in body.lower()


def punch(ctx: AppContext, credentials: Credentials, punch_type: PunchType) -> PunchResult:
    ctx.logger.info(f"Attempting to punch {punch_type.value}...")
    with browser_utils.auto_accept_dialogs(ctx):
        snapshot, state = ensure_ready(ctx, credentials)
        ctx.logger.info(f'Looking for button: "{punch_type.label}"')
        match = click_punch_button(ctx, snapshot, state, punch_type)
        time.sleep(ctx.config.post_click_delay)

    browser_utils.dump_artifacts(ctx, f"success-{punch_type.value.lower()}")
    confirmed = page_reports_success(ctx)
    if confirmed:
        ctx.logger.info(f"Punch {punch_type.value} successful!")
    else:
        ctx.logger.info(f"Punch {punch_type.value} completed (button clicked)")
    return PunchResult(punch_type=punch_type, label=match.label, strategy=match.strategy, confirmed=confirmed)
