from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import TimeoutException, WebDriverException

from browser_utils import AppContext
import browser_utils
import selector_defs as selectors
from errors import LoginError
from settings import Credentials


def _find(ctx: AppContext, candidates, purpose: str, timeout, clickable=False):
    try:
        return browser_utils.find_first(ctx, candidates, timeout=timeout, clickable=clickable)
    except WebDriverException as e:
        browser_utils.dump_artifacts(ctx, f"login_{purpose.replace(' ', '_')}_not_found")
        raise LoginError(f"Selector not found: {purpose} ({type(e).__name__})") from e


def wait_for_navigation(ctx: AppContext, old_root, old_url: str, timeout) -> None:
    """Block until the document is replaced (or the URL moves) and has finished loading."""
    wait = WebDriverWait(ctx.driver, timeout)
    wait.until(EC.any_of(EC.staleness_of(old_root), EC.url_changes(old_url)))
    wait.until(lambda d: d.execute_script("return document.readyState") == "complete")


def perform_login(ctx: AppContext, credentials: Credentials) -> None:
    ctx.logger.info("Performing login...")
    timeout = ctx.config.timeout

    email_input = _find(ctx, selectors.EMAIL_INPUT_SELECTORS, "email input", timeout)
    browser_utils.fill_input(ctx, email_input, credentials.username)

    password_input = _find(ctx, selectors.PASSWORD_INPUT_SELECTORS, "password input", timeout)
    browser_utils.fill_input(ctx, password_input, credentials.password)

    submit = _find(ctx, selectors.SIGN_IN_BUTTON_SELECTORS, "sign in button", timeout, clickable=True)
    old_root = ctx.driver.find_element(By.TAG_NAME, "html")
    old_url = ctx.driver.current_url
    if not browser_utils.safe_click(ctx, submit):
        raise LoginError("Could not click the Sign In button")

    try:
        wait_for_navigation(ctx, old_root, old_url, timeout)
    except TimeoutException as e:
        browser_utils.dump_artifacts(ctx, "login_navigation_timeout")
        raise LoginError(f"Navigation timeout after {timeout}s waiting for login to complete") from e
    ctx.logger.info("Login completed")
    ctx.logger.debug(f"Post-login URL: {ctx.driver.current_url}")
