"""Login and session-expiry handling for the King of Time admin console."""

from __future__ import annotations

import logging

from timecardpilot.browser.base import BrowserAdapter
from timecardpilot.evaluation.error_classifier import build_should_retry
from timecardpilot.exceptions import LoginFailedError
from timecardpilot.models import SessionState
from timecardpilot.retry import RetryPolicy, with_retry
from timecardpilot.settings import AppSettings

logger = logging.getLogger(__name__)

_LOGIN_ID_INPUT = 'input[name="login_id"]'
_LOGIN_PASSWORD_INPUT = 'input[name="login_password"]'
_LOGIN_BUTTON = "input#login_button"
_LOGIN_ERROR_MESSAGE = ".error-message"

# A live session that died lands on ".../login..." pages; the admin entry
# point itself lives under ".../admin".
_LOGIN_URL_MARKER = "login"
_AUTHENTICATED_URL_MARKER = "admin"


class SessionManager:
    """Owns the login state of the single browser session."""

    def __init__(self, adapter: BrowserAdapter, settings: AppSettings) -> None:
        self._adapter = adapter
        self._settings = settings
        self._state = SessionState.UNAUTHENTICATED
        self._policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            backoff_factor=settings.retry_backoff_factor,
            should_retry=build_should_retry(allow_missing_element=False),
        )

    @property
    def state(self) -> SessionState:
        return self._state

    async def ensure_authenticated(self) -> None:
        """Log in unless the session is already authenticated."""
        if self._state is SessionState.AUTHENTICATED:
            return
        if self._state is SessionState.EXPIRED:
            logger.info("Session expired — re-authenticating…")
        await self._perform_login()
        self._state = SessionState.AUTHENTICATED
        logger.info("Login successful.")

    async def is_session_expired(self) -> bool:
        """Return ``True`` if the page was bounced back to the login form.

        The admin login page shows the same form during normal navigation,
        so a visible login field only counts when the URL is a login page
        outside the admin area.
        """
        if not await self._adapter.is_visible(_LOGIN_ID_INPUT):
            return False
        current_url = await self._adapter.page_url()
        expired = (
            _LOGIN_URL_MARKER in current_url
            and _AUTHENTICATED_URL_MARKER not in current_url
        )
        if expired and self._state is not SessionState.EXPIRED:
            logger.warning("Session timeout detected at %s.", current_url)
            self._state = SessionState.EXPIRED
        return expired

    def mark_expired(self) -> None:
        """Record a session timeout reported by another layer."""
        if self._state is SessionState.AUTHENTICATED:
            logger.warning("Session marked as expired.")
            self._state = SessionState.EXPIRED

    async def _perform_login(self) -> None:
        """Enter credentials on the login page and submit."""
        if not self._settings.login_id or not self._settings.login_password:
            raise LoginFailedError(
                "Login ID and password must be configured.",
                {"missing": [
                    name
                    for name in ("login_id", "login_password")
                    if not getattr(self._settings, name)
                ]},
            )

        login_url = self._settings.login_url
        logger.info("Navigating to login page %s…", login_url)
        await with_retry(
            lambda: self._adapter.navigate(
                login_url, timeout=self._settings.navigation_timeout
            ),
            self._policy,
        )

        timeout = self._settings.element_timeout
        id_input = await self._adapter.wait_for_visible(_LOGIN_ID_INPUT, timeout=timeout)
        password_input = await self._adapter.wait_for_visible(
            _LOGIN_PASSWORD_INPUT, timeout=timeout
        )

        logger.info("Entering credentials…")
        await self._adapter.fill(id_input, self._settings.login_id)
        await self._adapter.fill(password_input, self._settings.login_password)
        login_button = await self._adapter.wait_for_visible(_LOGIN_BUTTON, timeout=timeout)
        await self._adapter.click(login_button)

        await with_retry(
            lambda: self._adapter.wait_for_load(
                timeout=self._settings.page_load_timeout
            ),
            self._policy,
        )

        current_url = await self._adapter.page_url()
        if self._is_login_entry(current_url):
            page_message = await self._adapter.text_content(_LOGIN_ERROR_MESSAGE)
            raise LoginFailedError(
                f"Login failed: {page_message or 'Unknown error'}",
                {"url": current_url},
            )

    def _is_login_entry(self, url: str) -> bool:
        entry = self._settings.login_url.rstrip("/")
        return url.split("?", 1)[0].rstrip("/") == entry
