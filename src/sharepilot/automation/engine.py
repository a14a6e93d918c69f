from typing import Protocol, Optional, Any


class AutomationEngine(Protocol):
    """Browser operations the workflow needs.

    Scripts passed to ``evaluate`` and ``wait_for_function`` are JavaScript
    arrow functions taking a single argument, e.g. ``"(sel) => !!document.querySelector(sel)"``.
    All timeouts are in milliseconds; a timeout raises.
    """

    def start(self, headless: bool = True, user_data_dir: Optional[str] = None) -> None:
        ...

    def stop(self) -> None:
        ...

    def goto(self, url: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        ...

    def type(self, selector: str, value: str, clear: bool = True) -> None:
        ...

    def click(self, selector: str, timeout_ms: int = 15000) -> None:
        ...

    def click_and_wait_for_navigation(self, selector: str, wait_until: str = "networkidle", timeout_ms: int = 30000) -> None:
        ...

    def wait_for(self, selector: str, timeout_ms: int = 15000, visible: bool = False) -> None:
        ...

    def wait_for_function(self, script: str, arg: Any = None, timeout_ms: int = 15000) -> None:
        ...

    def select_option(self, selector: str, value: str) -> None:
        ...

    def press(self, key: str) -> None:
        ...

    def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    def input_value(self, selector: str) -> str:
        ...

    def text_content(self, selector: str) -> Optional[str]:
        ...
