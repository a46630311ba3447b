from selenium.webdriver.common.by import By

BASE_URL = "https://infoservices.securtime.adp.com"
LOGIN_URL = BASE_URL + "/login?redirectUrl=%2Fwelcome"
LANDING_URL = BASE_URL + "/welcome"
LANDING_PATH_MARKER = "/welcome"

SIGN_IN_LABEL = "Sign In"
PUNCH_WORD = "Punch"
SUCCESS_TEXT = "success"

EMAIL_INPUT_SELECTORS = [
    (By.CSS_SELECTOR, "input[type='email']"),
]

PASSWORD_INPUT_SELECTORS = [
    (By.CSS_SELECTOR, "input[type='password']"),
]

SIGN_IN_BUTTON_SELECTORS = [
    (By.CSS_SELECTOR, "st-button[type='submit'] button.mybtn"),
    (By.CSS_SELECTOR, "button[type='submit']"),
    (By.XPATH, "//button[normalize-space()='Sign In']"),
]

# One read of every rendered button, so a snapshot is a single point in time.
SNAPSHOT_SCRIPT = """
return {
    url: window.location.href,
    title: document.title,
    buttons: Array.from(document.querySelectorAll('button')).map(btn => ({
        element: btn,
        text: (btn.textContent || '').trim(),
        className: typeof btn.className === 'string' ? btn.className : '',
        visible: btn.offsetParent !== null
    }))
};
"""

BODY_TEXT_SCRIPT = "return document.body ? document.body.textContent : '';"
