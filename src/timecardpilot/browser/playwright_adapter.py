"""Playwright-backed implementation of BrowserAdapter."""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from timecardpilot.exceptions import BrowserLaunchError, ElementNotFoundError

logger = logging.getLogger(__name__)

_TEXT_PROBE_TIMEOUT_MS = 1_000


class PlaywrightAdapter:
    """Async browser driver built on Playwright Chromium."""

    def __init__(self) -> None:
        self._pw: Any = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        assert self._page is not None, "Browser not launched — call launch() first."
        return self._page

    # --- lifecycle ---

    async def launch(self, headless: bool = False, slow_mo: int = 0) -> None:
        try:
            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=headless,
                slow_mo=slow_mo,
                args=["--disable-dev-shm-usage"],
            )
            self._context = await self._browser.new_context(
                viewport={"width": 1280, "height": 900},
                locale="ja-JP",
            )
            self._page = await self._context.new_page()
            logger.info("Browser launched (headless=%s).", headless)
        except Exception as exc:
            raise BrowserLaunchError(f"Failed to start Playwright Chromium: {exc}") from exc

    async def close(self) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._pw:
            await self._pw.stop()
        self._context = self._browser = self._page = self._pw = None
        logger.info("Browser closed.")

    # --- navigation ---

    async def navigate(self, url: str, *, timeout: float = 30_000) -> None:
        await self.page.goto(url, timeout=timeout, wait_until="domcontentloaded")

    async def wait_for_load(self, *, timeout: float = 10_000) -> None:
        await self.page.wait_for_load_state("networkidle", timeout=timeout)

    # --- querying ---

    async def wait_for_visible(self, selector: str, *, timeout: float = 10_000) -> Any:
        try:
            return await self.page.wait_for_selector(
                selector, state="visible", timeout=timeout
            )
        except PlaywrightTimeoutError as exc:
            raise ElementNotFoundError(selector, context={"timeout_ms": timeout}) from exc

    async def is_visible(self, selector: str) -> bool:
        try:
            return await self.page.locator(selector).first.is_visible()
        except PlaywrightError:
            return False

    async def query(self, selector: str, *, within: Any = None) -> Any | None:
        root = within if within is not None else self.page
        return await root.query_selector(selector)

    async def query_all(self, selector: str, *, within: Any = None) -> list[Any]:
        root = within if within is not None else self.page
        return await root.query_selector_all(selector)

    # --- interaction ---

    async def fill(self, target: Any, value: str) -> None:
        await target.fill(value)

    async def click(self, target: Any) -> None:
        await target.click()

    async def select_option(self, target: Any, label: str) -> None:
        await target.select_option(label=label)

    # --- reading ---

    async def get_attribute(self, target: Any, name: str) -> str | None:
        return await target.get_attribute(name)

    async def text_content(self, selector: str) -> str | None:
        try:
            text = await self.page.locator(selector).first.text_content(
                timeout=_TEXT_PROBE_TIMEOUT_MS
            )
        except PlaywrightError:
            return None
        return text.strip() if text else None

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if arg is not None:
            return await self.page.evaluate(expression, arg)
        return await self.page.evaluate(expression)

    async def page_url(self) -> str:
        return self.page.url

    async def wait_settle(self, duration_ms: float) -> None:
        await self.page.wait_for_timeout(duration_ms)
