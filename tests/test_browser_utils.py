import logging
import os
import tempfile
import unittest
from unittest.mock import patch

from selenium.common.exceptions import WebDriverException

import browser_utils
from errors import BrowserLaunchError
from settings import SessionConfig
from tests.fakes import FakeAlert, FakeDriver, make_ctx

LOGGER = logging.getLogger("tests.browser")


class InitBrowserTests(unittest.TestCase):
    def _launch(self, config: SessionConfig, driver: FakeDriver):
        with patch("browser_utils.chromedriver_autoinstaller.install") as install, \
                patch("browser_utils.webdriver.Chrome", return_value=driver) as chrome:
            ctx = browser_utils.init_browser(config, LOGGER)
        install.assert_called_once()
        return ctx, chrome

    def test_geolocation_matches_config_exactly(self) -> None:
        config = SessionConfig(latitude=12.9716, longitude=77.5946, accuracy=25)
        driver = FakeDriver()
        ctx, _ = self._launch(config, driver)
        self.assertIs(ctx.driver, driver)
        self.assertEqual(
            driver.cdp_calls("Emulation.setGeolocationOverride"),
            [{"latitude": 12.9716, "longitude": 77.5946, "accuracy": 25}],
        )
        self.assertEqual(
            driver.cdp_calls("Browser.grantPermissions"),
            [{"origin": "https://infoservices.securtime.adp.com", "permissions": ["geolocation"]}],
        )
        scripts = [p["source"] for p in driver.cdp_calls("Page.addScriptToEvaluateOnNewDocument")]
        self.assertTrue(any("12.9716" in s and "77.5946" in s for s in scripts))

    def test_viewport_user_agent_and_timeout(self) -> None:
        config = SessionConfig()
        driver = FakeDriver()
        ctx, chrome = self._launch(config, driver)
        self.assertEqual(
            driver.cdp_calls("Emulation.setDeviceMetricsOverride"),
            [{"width": 1366, "height": 768, "deviceScaleFactor": 1, "mobile": False}],
        )
        options = chrome.call_args.kwargs["options"]
        self.assertIn("--headless=new", options.arguments)
        self.assertIn("--window-size=1366,768", options.arguments)
        self.assertIn(f"--user-agent={config.user_agent}", options.arguments)
        self.assertEqual(driver.page_load_timeout, 30)
        self.assertIs(ctx.config, config)

    def test_headed_mode(self) -> None:
        _, chrome = self._launch(SessionConfig(headless=False), FakeDriver())
        self.assertNotIn("--headless=new", chrome.call_args.kwargs["options"].arguments)

    def test_launch_failure_is_wrapped(self) -> None:
        with patch("browser_utils.chromedriver_autoinstaller.install"), \
                patch("browser_utils.webdriver.Chrome", side_effect=WebDriverException("chrome not reachable")):
            with self.assertRaises(BrowserLaunchError) as caught:
                browser_utils.init_browser(SessionConfig(), LOGGER)
        self.assertIn("chrome not reachable", str(caught.exception))

    def test_half_started_driver_is_quit(self) -> None:
        driver = FakeDriver()

        def refuse(cmd, params):
            raise WebDriverException("cdp unavailable")

        driver.execute_cdp_cmd = refuse
        with patch("browser_utils.chromedriver_autoinstaller.install"), \
                patch("browser_utils.webdriver.Chrome", return_value=driver):
            with self.assertRaises(BrowserLaunchError):
                browser_utils.init_browser(SessionConfig(), LOGGER)
        self.assertTrue(driver.quit_called)

    def test_reported_geolocation_reflects_configured_position(self) -> None:
        config = SessionConfig(latitude=12.9716, longitude=77.5946, accuracy=25)
        ctx, _ = self._launch(config, FakeDriver())
        self.assertEqual(
            browser_utils.reported_geolocation(ctx),
            {"latitude": 12.9716, "longitude": 77.5946, "accuracy": 25},
        )

    def test_reported_geolocation_unavailable(self) -> None:
        driver = FakeDriver()

        def refuse(script, *args):
            raise WebDriverException("script timeout")

        driver.execute_async_script = refuse
        self.assertIsNone(browser_utils.reported_geolocation(make_ctx(driver)))


class QuitBrowserTests(unittest.TestCase):
    def test_quit_clears_driver(self) -> None:
        driver = FakeDriver()
        ctx = make_ctx(driver)
        browser_utils.quit_browser(ctx)
        self.assertTrue(driver.quit_called)
        self.assertIsNone(ctx.driver)
        browser_utils.quit_browser(ctx)
        browser_utils.quit_browser(None)

    def test_quit_errors_are_ignored(self) -> None:
        driver = FakeDriver()

        def boom():
            raise WebDriverException("already gone")

        driver.quit = boom
        ctx = make_ctx(driver)
        browser_utils.quit_browser(ctx)
        self.assertIsNone(ctx.driver)


class DialogTests(unittest.TestCase):
    def test_accept_open_dialog(self) -> None:
        driver = FakeDriver()
        alert = FakeAlert("Are you sure?")
        driver.switch_to.alert_obj = alert
        self.assertEqual(browser_utils.accept_open_dialog(make_ctx(driver)), "Are you sure?")
        self.assertTrue(alert.accepted)

    def test_no_dialog(self) -> None:
        self.assertIsNone(browser_utils.accept_open_dialog(make_ctx(FakeDriver())))

    def test_subscription_lifetime(self) -> None:
        driver = FakeDriver()
        ctx = make_ctx(driver)
        with browser_utils.auto_accept_dialogs(ctx):
            self.assertIn(browser_utils.DIALOG_ACCEPT_SCRIPT, driver.scripts)
            self.assertNotIn(browser_utils.DIALOG_RESTORE_SCRIPT, driver.scripts)
            driver.switch_to.alert_obj = FakeAlert("leftover")
        self.assertIn(browser_utils.DIALOG_RESTORE_SCRIPT, driver.scripts)
        self.assertTrue(driver.switch_to.alert_obj.accepted)
        added = driver.cdp_calls("Page.addScriptToEvaluateOnNewDocument")[0]
        self.assertEqual(added["source"], browser_utils.DIALOG_ACCEPT_SCRIPT)
        removed = driver.cdp_calls("Page.removeScriptToEvaluateOnNewDocument")
        self.assertEqual(len(removed), 1)

    def test_page_dialog_messages_are_logged_on_exit(self) -> None:
        driver = FakeDriver()
        ctx = make_ctx(driver)
        with self.assertLogs("tests.clock", level="INFO") as logs:
            with browser_utils.auto_accept_dialogs(ctx):
                driver.page_dialogs.extend(["Confirm punch?", "Saved"])
        self.assertEqual(logs.output, [
            "INFO:tests.clock:Dialog detected: Confirm punch?",
            "INFO:tests.clock:Dialog detected: Saved",
        ])
        self.assertEqual(browser_utils.log_page_dialogs(ctx), [])

    def test_subscription_removed_when_block_raises(self) -> None:
        driver = FakeDriver()
        with self.assertRaises(RuntimeError):
            with browser_utils.auto_accept_dialogs(make_ctx(driver)):
                raise RuntimeError("click failed")
        self.assertIn(browser_utils.DIALOG_RESTORE_SCRIPT, driver.scripts)


class DumpArtifactsTests(unittest.TestCase):
    def test_writes_png_html_and_url(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            driver = FakeDriver(url="https://infoservices.securtime.adp.com/welcome")
            ctx = make_ctx(driver)
            ctx.dump_dir = os.path.join(tmp, "dumps")
            browser_utils.dump_artifacts(ctx, "page state/1")
            files = sorted(os.listdir(ctx.dump_dir))
            self.assertEqual(len(files), 3)
            self.assertTrue(all("page_state_1" in name for name in files))
            url_file = [name for name in files if name.endswith(".url.txt")][0]
            with open(os.path.join(ctx.dump_dir, url_file), encoding="utf-8") as f:
                self.assertEqual(f.read(), driver.current_url)

    def test_screenshot_failure_is_swallowed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            driver = FakeDriver()

            def broken(path):
                raise WebDriverException("tab crashed")

            driver.save_screenshot = broken
            ctx = make_ctx(driver)
            ctx.dump_dir = tmp
            browser_utils.dump_artifacts(ctx, "error-attempt-1")
            self.assertEqual(len(os.listdir(tmp)), 2)

    def test_disabled_without_dump_dir(self) -> None:
        driver = FakeDriver()
        driver.save_screenshot = None
        browser_utils.dump_artifacts(make_ctx(driver), "anything")


if __name__ == "__main__":
    unittest.main()
