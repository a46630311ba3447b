import sys
import time
import os
import argparse
import logging

from dotenv import load_dotenv

import browser_utils
import clock_actions
from errors import ConfigError, RetriesExhaustedError
from notifications import notify_punch_failure, notify_punch_result
from page_state import SecurTimeAdapter
from settings import Settings, load_settings

logger = logging.getLogger("clock_manager")

# Suppress verbose selenium/urllib3 logging
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("selenium").setLevel(logging.WARNING)
logging.getLogger("selenium.webdriver.remote.remote_connection").setLevel(logging.WARNING)


def run_with_retry(attempt_fn, max_attempts: int, delay: float):
    """Call ``attempt_fn(attempt)`` until it returns, at most ``max_attempts`` times.

    Every exception counts as a failed attempt. Sleeps ``delay`` seconds between
    attempts and raises RetriesExhaustedError after the last one.
    """
    last_error = None
    for attempt in range(1, max_attempts + 1):
        try:
            return attempt_fn(attempt)
        except Exception as e:
            last_error = e
            logger.error(f"Attempt {attempt} failed: {type(e).__name__}: {e}")
            if attempt < max_attempts:
                logger.info(f"Waiting {delay:g} seconds before retry...")
                time.sleep(delay)
    logger.error("All retry attempts failed!")
    raise RetriesExhaustedError(max_attempts, last_error)


def run_attempt(settings: Settings, attempt: int):
    """One full pass: launch, open the login page, punch, always release the browser."""
    session = settings.session
    logger.info(
        f"Starting ADP automation attempt {attempt}/{session.max_retries} for punch {settings.punch_type.value}..."
    )
    logger.info(f"Using location: {session.latitude}, {session.longitude}")

    ctx = browser_utils.init_browser(session, logger, adapter=SecurTimeAdapter())
    try:
        ctx.driver.get(session.login_url)
        # Only a loaded page on the granted origin can answer the geolocation query.
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Page reports location: {browser_utils.reported_geolocation(ctx)}")
        return clock_actions.punch(ctx, settings.credentials, settings.punch_type)
    except Exception:
        browser_utils.dump_artifacts(ctx, f"error-attempt-{attempt}")
        raise
    finally:
        browser_utils.quit_browser(ctx)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SecurTime AutoClock")
    parser.add_argument("-u", "--username", help="ADP username (or ADP_USERNAME)", required=False)
    parser.add_argument("-p", "--punch", type=str.lower, choices=["in", "out"],
                        help="Punch IN or OUT (default: PUNCH_TYPE, else decided by IST time of day)")
    parser.add_argument("--headed", action="store_true", help="Show the Chrome window instead of running headless")
    parser.add_argument("--debug", action="store_true", help="Verbose debug output")
    parser.add_argument("--dump-dir", default=None,
                        help="Directory to write screenshots/HTML (or ADP_DUMP_DIR)")
    parser.add_argument("--max-retries", type=int, default=None, help="Attempts before giving up (default 2)")
    parser.add_argument("--retry-delay", type=float, default=None, help="Seconds between attempts (default 10)")
    parser.add_argument("--cutoff-hour", type=int, default=None,
                        help="IST hour from which the default action is OUT (default 12)")
    parser.add_argument("--no-notify", action="store_true", help="Don't send desktop notifications")
    return parser


def main(argv=None) -> int:
    args = vars(build_parser().parse_args(argv))

    load_dotenv()

    # Set up logging level based on --debug flag
    if args["debug"]:
        logging.basicConfig(level=logging.DEBUG, format="[%(levelname)s] %(message)s")
        logger.setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
        logger.setLevel(logging.INFO)

    try:
        settings = load_settings(args, os.environ)
    except ConfigError as e:
        print(f"{e}\n")
        return 1

    session = settings.session
    if settings.punch_source == "schedule":
        logger.info(f"No punch type given - defaulting to Punch {settings.punch_type.value} (cutoff {settings.cutoff_hour}:00 IST)")
    else:
        logger.info(f"Using {settings.punch_source} punch type: {settings.punch_type.value}")
    logger.debug(
        f"headless={session.headless} dump_dir={session.dump_dir or '(disabled)'} "
        f"max_retries={session.max_retries} retry_delay={session.retry_delay:g}s"
    )

    try:
        result = run_with_retry(
            lambda attempt: run_attempt(settings, attempt),
            max_attempts=session.max_retries,
            delay=session.retry_delay,
        )
    except RetriesExhaustedError as e:
        print("...")
        print(str(e))
        if settings.notify:
            notify_punch_failure(settings.punch_type, e)
        return 1

    print("Automation completed successfully!")
    if settings.notify:
        notify_punch_result(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
