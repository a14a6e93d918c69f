from typing import Optional, Any

try:
    from selenium import webdriver
    from selenium.webdriver.common.by import By
    from selenium.webdriver.common.keys import Keys
    from selenium.webdriver.common.action_chains import ActionChains
    from selenium.webdriver.chrome.options import Options as ChromeOptions
    from selenium.webdriver.support import expected_conditions as EC
    from selenium.webdriver.support.ui import Select, WebDriverWait
    SELENIUM_AVAILABLE = True
except Exception:  # pragma: no cover - optional dependency
    SELENIUM_AVAILABLE = False


def _call(script: str) -> str:
    # Engine scripts are arrow functions; execute_script needs a function body.
    return f"return ({script})(arguments[0]);"


class SeleniumEngine:
    def __init__(self):
        if not SELENIUM_AVAILABLE:
            raise RuntimeError("Selenium is not installed. Install with: pip install sharepilot[selenium]")
        self._driver: Optional["webdriver.Chrome"] = None

    def start(self, headless: bool = True, user_data_dir: Optional[str] = None) -> None:
        options = ChromeOptions()
        if headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--window-size=1366,768")
        if user_data_dir:
            options.add_argument(f"--user-data-dir={user_data_dir}")
        self._driver = webdriver.Chrome(options=options)

    def stop(self) -> None:
        if self._driver:
            self._driver.quit()
            self._driver = None

    @property
    def driver(self) -> "webdriver.Chrome":
        assert self._driver is not None, "engine not started"
        return self._driver

    def _wait(self, timeout_ms: int) -> "WebDriverWait":
        return WebDriverWait(self.driver, timeout_ms / 1000.0)

    def _page_loaded(self, driver) -> bool:
        return driver.execute_script("return document.readyState") == "complete"

    def goto(self, url: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        self.driver.set_page_load_timeout(timeout_ms / 1000.0)
        self.driver.get(url)
        self._wait(timeout_ms).until(self._page_loaded)

    def type(self, selector: str, value: str, clear: bool = True) -> None:
        elem = self.driver.find_element(By.CSS_SELECTOR, selector)
        if clear:
            elem.clear()
        elem.send_keys(value)

    def click(self, selector: str, timeout_ms: int = 15000) -> None:
        elem = self._wait(timeout_ms).until(EC.element_to_be_clickable((By.CSS_SELECTOR, selector)))
        elem.click()

    def click_and_wait_for_navigation(self, selector: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        before = self.driver.current_url
        self.click(selector, timeout_ms=timeout_ms)
        self._wait(timeout_ms).until(lambda d: d.current_url != before and self._page_loaded(d))

    def wait_for(self, selector: str, timeout_ms: int = 15000, visible: bool = False) -> None:
        locator = (By.CSS_SELECTOR, selector)
        condition = EC.visibility_of_element_located(locator) if visible else EC.presence_of_element_located(locator)
        self._wait(timeout_ms).until(condition)

    def wait_for_function(self, script: str, arg: Any = None, timeout_ms: int = 15000) -> None:
        self._wait(timeout_ms).until(lambda d: d.execute_script(_call(script), arg))

    def select_option(self, selector: str, value: str) -> None:
        Select(self.driver.find_element(By.CSS_SELECTOR, selector)).select_by_value(str(value))

    def press(self, key: str) -> None:
        ActionChains(self.driver).send_keys(getattr(Keys, key.upper(), key)).perform()

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.driver.execute_script(_call(script), arg)

    def input_value(self, selector: str) -> str:
        return self.driver.find_element(By.CSS_SELECTOR, selector).get_attribute("value") or ""

    def text_content(self, selector: str) -> Optional[str]:
        elems = self.driver.find_elements(By.CSS_SELECTOR, selector)
        if not elems:
            return None
        return elems[0].get_attribute("textContent")
