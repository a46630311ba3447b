import os
import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from selenium import webdriver
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from selenium.common.exceptions import NoAlertPresentException, TimeoutException, WebDriverException
import chromedriver_autoinstaller

from errors import BrowserLaunchError
from page_state import PageAdapter
from settings import SessionConfig

CHROME_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

# Answers getCurrentPosition/watchPosition from page scripts with the configured position.
GEOLOCATION_SCRIPT = """
(function () {
    const coords = {latitude: %(latitude)r, longitude: %(longitude)r, accuracy: %(accuracy)r,
                    altitude: null, altitudeAccuracy: null, heading: null, speed: null};
    const position = () => ({coords: coords, timestamp: Date.now()});
    if (!navigator.geolocation) { return; }
    navigator.geolocation.getCurrentPosition = function (success) { success(position()); };
    navigator.geolocation.watchPosition = function (success) { success(position()); return 0; };
})();
"""

REPORTED_GEOLOCATION_SCRIPT = """
const done = arguments[arguments.length - 1];
if (!navigator.geolocation) { done(null); return; }
navigator.geolocation.getCurrentPosition(
    p => done({latitude: p.coords.latitude, longitude: p.coords.longitude, accuracy: p.coords.accuracy}),
    e => done({error: e.message})
);
"""

# Page-level overrides record each message in sessionStorage so it survives same-origin
# navigations; pages without storage keep them on window instead.
DIALOG_ACCEPT_SCRIPT = """
if (!window.__autoclockDialogs) {
    const record = function (msg) {
        try {
            const seen = JSON.parse(sessionStorage.getItem('__autoclockDialogMessages') || '[]');
            seen.push(String(msg));
            sessionStorage.setItem('__autoclockDialogMessages', JSON.stringify(seen));
        } catch (e) {
            (window.__autoclockDialogMessages = window.__autoclockDialogMessages || []).push(String(msg));
        }
    };
    window.__autoclockDialogs = {alert: window.alert, confirm: window.confirm, prompt: window.prompt};
    window.alert = function (msg) { record(msg); };
    window.confirm = function (msg) { record(msg); return true; };
    window.prompt = function (msg, value) { record(msg); return value || ''; };
}
"""

DIALOG_MESSAGES_SCRIPT = """
let seen = [];
try {
    seen = JSON.parse(sessionStorage.getItem('__autoclockDialogMessages') || '[]');
    sessionStorage.removeItem('__autoclockDialogMessages');
} catch (e) {}
seen = seen.concat(window.__autoclockDialogMessages || []);
window.__autoclockDialogMessages = [];
return seen;
"""

DIALOG_RESTORE_SCRIPT = """
const saved = window.__autoclockDialogs;
if (saved) {
    window.alert = saved.alert;
    window.confirm = saved.confirm;
    window.prompt = saved.prompt;
    delete window.__autoclockDialogs;
}
"""


@dataclass
class AppContext:
    driver: Optional[WebDriver]
    wait: Optional[WebDriverWait]
    dump_dir: Optional[str]
    logger: Optional[logging.Logger]
    config: SessionConfig
    adapter: Optional[PageAdapter] = None


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def build_chrome_options(config: SessionConfig):
    options = webdriver.ChromeOptions()
    if config.headless:
        options.add_argument("--headless=new")
    for arg in CHROME_ARGS:
        options.add_argument(arg)
    width, height = config.viewport
    options.add_argument(f"--window-size={width},{height}")
    options.add_argument(f"--user-agent={config.user_agent}")
    options.add_experimental_option("prefs", {
        "credentials_enable_service": False,
        "profile.password_manager_enabled": False,
    })
    return options


def apply_geolocation(driver: WebDriver, config: SessionConfig) -> None:
    """Grant geolocation to the target origin and pin the reported position."""
    driver.execute_cdp_cmd(
        "Browser.grantPermissions",
        {"origin": origin_of(config.login_url), "permissions": ["geolocation"]},
    )
    driver.execute_cdp_cmd("Emulation.setGeolocationOverride", config.geolocation())
    driver.execute_cdp_cmd(
        "Page.addScriptToEvaluateOnNewDocument",
        {"source": GEOLOCATION_SCRIPT % config.geolocation()},
    )


def apply_viewport(driver: WebDriver, config: SessionConfig) -> None:
    width, height = config.viewport
    driver.execute_cdp_cmd(
        "Emulation.setDeviceMetricsOverride",
        {"width": width, "height": height, "deviceScaleFactor": 1, "mobile": False},
    )


def init_browser(config: SessionConfig, logger: logging.Logger, adapter: Optional[PageAdapter] = None) -> AppContext:
    """Launch a fresh Chrome session with the spoofed location, viewport and user agent."""
    driver = None
    try:
        chromedriver_autoinstaller.install()
        driver = webdriver.Chrome(options=build_chrome_options(config))
        driver.set_page_load_timeout(config.timeout)
        apply_viewport(driver, config)
        apply_geolocation(driver, config)
    except Exception as e:
        if driver is not None:
            try:
                driver.quit()
            except Exception:
                pass
        raise BrowserLaunchError(f"Failed to start Chrome: {type(e).__name__}: {e}") from e

    logger.debug(
        f"Browser started headless={config.headless} viewport={config.viewport[0]}x{config.viewport[1]} "
        f"location={config.latitude},{config.longitude} (+/-{config.accuracy}m)"
    )
    return AppContext(
        driver=driver,
        wait=WebDriverWait(driver, config.timeout),
        dump_dir=config.dump_dir,
        logger=logger,
        config=config,
        adapter=adapter,
    )


def quit_browser(ctx: Optional[AppContext]) -> None:
    if ctx is None or ctx.driver is None:
        return
    try:
        ctx.driver.quit()
    except Exception as e:
        if ctx.logger:
            ctx.logger.debug(f"Browser quit failed: {e}")
    finally:
        ctx.driver = None


def reported_geolocation(ctx: AppContext) -> Optional[dict]:
    """Position as the page sees it, or None if it cannot be read."""
    try:
        return ctx.driver.execute_async_script(REPORTED_GEOLOCATION_SCRIPT)
    except WebDriverException as e:
        if ctx.logger:
            ctx.logger.debug(f"Could not read reported geolocation: {e}")
        return None


def find_first(ctx: AppContext, locators, timeout=25, clickable=False):
    last_error = None
    for by, value in locators:
        try:
            element = WebDriverWait(ctx.driver, timeout).until(EC.presence_of_element_located((by, value)))
            if element is not None:
                if not clickable:
                    return element
                if element.is_displayed() and element.is_enabled():
                    return element
        except Exception as e:
            last_error = e
            continue
    raise last_error or TimeoutException("Timed out finding element")


def safe_click(ctx: AppContext, element):
    try:
        element.click()
        return True
    except Exception:
        try:
            ctx.driver.execute_script("arguments[0].click();", element)
            return True
        except Exception:
            return False


def fill_input(ctx: AppContext, el, value: str) -> None:
    """Clear a text input and type ``value``; fall back to a JS setter if typing doesn't stick."""
    try:
        el.click()
    except Exception:
        pass
    try:
        el.clear()
    except Exception:
        pass
    # Controlled inputs can keep their value after clear(); select-all first.
    try:
        el.send_keys(Keys.CONTROL, "a")
        el.send_keys(Keys.BACKSPACE)
    except Exception:
        pass
    el.send_keys(value)

    current_value = el.get_attribute("value") or ""
    if current_value == value:
        return
    ctx.logger.debug("Typed value didn't stick, setting it via JS")
    ctx.driver.execute_script(
        """
        const el = arguments[0];
        const val = arguments[1];
        el.focus();
        const setter = Object.getOwnPropertyDescriptor(window.HTMLInputElement.prototype, 'value')?.set;
        if (setter) setter.call(el, val);
        else el.value = val;
        el.dispatchEvent(new Event('input', { bubbles: true }));
        el.dispatchEvent(new Event('change', { bubbles: true }));
        el.blur();
        """,
        el,
        value,
    )


def accept_open_dialog(ctx: AppContext, timeout: float = 0) -> Optional[str]:
    """Accept a native dialog if one is open; returns its text."""
    try:
        if timeout:
            WebDriverWait(ctx.driver, timeout).until(EC.alert_is_present())
        alert = ctx.driver.switch_to.alert
        text = alert.text
        alert.accept()
    except (NoAlertPresentException, TimeoutException):
        return None
    ctx.logger.info(f"Dialog detected: {text}")
    return text


def log_page_dialogs(ctx: AppContext) -> list:
    """Log and clear the messages of dialogs the page overrides answered."""
    try:
        messages = ctx.driver.execute_script(DIALOG_MESSAGES_SCRIPT) or []
    except WebDriverException as e:
        ctx.logger.debug(f"Could not read accepted dialogs: {e}")
        return []
    for message in messages:
        ctx.logger.info(f"Dialog detected: {message}")
    return messages


@contextmanager
def auto_accept_dialogs(ctx: AppContext):
    """Accept every alert/confirm/prompt the page raises while the block runs."""
    script_id = None
    try:
        script_id = ctx.driver.execute_cdp_cmd(
            "Page.addScriptToEvaluateOnNewDocument", {"source": DIALOG_ACCEPT_SCRIPT}
        ).get("identifier")
        ctx.driver.execute_script(DIALOG_ACCEPT_SCRIPT)
    except WebDriverException as e:
        ctx.logger.debug(f"Could not install dialog handler: {e}")
    try:
        yield
    finally:
        try:
            accept_open_dialog(ctx)
            log_page_dialogs(ctx)
            if script_id is not None:
                ctx.driver.execute_cdp_cmd("Page.removeScriptToEvaluateOnNewDocument", {"identifier": script_id})
            ctx.driver.execute_script(DIALOG_RESTORE_SCRIPT)
        except WebDriverException as e:
            ctx.logger.debug(f"Could not remove dialog handler: {e}")



def dump_artifacts(ctx: AppContext, tag: str) -> None:
    if ctx is None or not ctx.dump_dir or ctx.driver is None:
        return
    try:
        os.makedirs(ctx.dump_dir, exist_ok=True)
        ts = time.strftime("%Y%m%d_%H%M%S")
        safe_tag = "".join(c if c.isalnum() or c in ("-", "_", ".") else "_" for c in (tag or "debug"))
        base = os.path.join(ctx.dump_dir, f"{ts}_{safe_tag}")
        try:
            ctx.driver.save_screenshot(base + ".png")
        except Exception:
            pass
        try:
            with open(base + ".html", "w", encoding="utf-8") as f:
                f.write(ctx.driver.page_source)
        except Exception:
            pass
        try:
            with open(base + ".url.txt", "w", encoding="utf-8") as f:
                f.write(getattr(ctx.driver, "current_url", ""))
        except Exception:
            pass
        if ctx.logger:
            ctx.logger.debug(f"Wrote artifacts: {base}(.png/.html/.url.txt)")
    except Exception:
        # Never let debug dumping kill the run.
        return
