"""Protocol definition for browser adapters."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class BrowserAdapter(Protocol):
    """Thin abstraction over a browser automation library.

    Every method is async so the pipeline can ``await`` each interaction.
    Element handles returned by ``wait_for_visible``, ``query`` and
    ``query_all`` are opaque and only valid until the page re-renders.
    Timeouts and durations are in milliseconds.
    """

    async def launch(self, headless: bool = False, slow_mo: int = 0) -> None:
        """Start the browser process."""
        ...

    async def close(self) -> None:
        """Shut down the browser and free resources."""
        ...

    async def navigate(self, url: str, *, timeout: float = 30_000) -> None:
        """Navigate to *url*, raising if it does not load within *timeout*."""
        ...

    async def wait_for_load(self, *, timeout: float = 10_000) -> None:
        """Wait until the page has settled after a navigation."""
        ...

    async def wait_for_visible(self, selector: str, *, timeout: float = 10_000) -> Any:
        """Return the first visible match, or raise ``ElementNotFoundError``."""
        ...

    async def is_visible(self, selector: str) -> bool:
        """Return ``True`` if *selector* currently matches a visible element."""
        ...

    async def query(self, selector: str, *, within: Any = None) -> Any | None:
        """Return the first element matching *selector*, or ``None``."""
        ...

    async def query_all(self, selector: str, *, within: Any = None) -> list[Any]:
        """Return every element matching *selector*, in document order."""
        ...

    async def fill(self, target: Any, value: str) -> None:
        """Clear and type *value* into *target*."""
        ...

    async def click(self, target: Any) -> None:
        """Click *target*."""
        ...

    async def select_option(self, target: Any, label: str) -> None:
        """Choose the option labelled *label* in the ``<select>`` *target*."""
        ...

    async def get_attribute(self, target: Any, name: str) -> str | None:
        """Return the value of attribute *name* on *target*."""
        ...

    async def text_content(self, selector: str) -> str | None:
        """Return the text of *selector* if it is present right now."""
        ...

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Run a JS expression in the page and return the result."""
        ...

    async def page_url(self) -> str:
        """Return the current page URL."""
        ...

    async def wait_settle(self, duration_ms: float) -> None:
        """Pause for a fixed time to let asynchronous rendering finish."""
        ...
