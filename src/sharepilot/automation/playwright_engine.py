from typing import Optional, Any

from playwright.sync_api import sync_playwright, Page, Browser, BrowserContext

VIEWPORT = {"width": 1366, "height": 768}
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class PlaywrightEngine:
    def __init__(self):
        self._pw = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def start(self, headless: bool = True, user_data_dir: Optional[str] = None) -> None:
        self._pw = sync_playwright().start()
        launch_args = {"headless": headless, "args": ["--no-sandbox", "--disable-setuid-sandbox"]}
        if user_data_dir:
            self._context = self._pw.chromium.launch_persistent_context(
                user_data_dir, viewport=VIEWPORT, user_agent=USER_AGENT, **launch_args
            )
            pages = self._context.pages
            self._page = pages[0] if pages else self._context.new_page()
        else:
            self._browser = self._pw.chromium.launch(**launch_args)
            self._context = self._browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
            self._page = self._context.new_page()

    def stop(self) -> None:
        if self._context:
            self._context.close()
        if self._browser:
            self._browser.close()
        if self._pw:
            self._pw.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._pw = None

    @property
    def page(self) -> Page:
        assert self._page is not None, "engine not started"
        return self._page

    def goto(self, url: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    def type(self, selector: str, value: str, clear: bool = True) -> None:
        locator = self.page.locator(selector)
        if clear:
            locator.fill("")
        locator.type(value)

    def click(self, selector: str, timeout_ms: int = 15000) -> None:
        self.page.click(selector, timeout=timeout_ms)

    def click_and_wait_for_navigation(self, selector: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        with self.page.expect_navigation(wait_until=wait_until, timeout=timeout_ms):
            self.page.click(selector, timeout=timeout_ms)

    def wait_for(self, selector: str, timeout_ms: int = 15000, visible: bool = False) -> None:
        self.page.wait_for_selector(selector, timeout=timeout_ms, state="visible" if visible else "attached")

    def wait_for_function(self, script: str, arg: Any = None, timeout_ms: int = 15000) -> None:
        self.page.wait_for_function(script, arg=arg, timeout=timeout_ms)

    def select_option(self, selector: str, value: str) -> None:
        self.page.select_option(selector, value=str(value))

    def press(self, key: str) -> None:
        self.page.keyboard.press(key)

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.page.evaluate(script, arg)

    def input_value(self, selector: str) -> str:
        return self.page.input_value(selector)

    def text_content(self, selector: str) -> Optional[str]:
        handle = self.page.query_selector(selector)
        if handle is None:
            return None
        return handle.text_content()
