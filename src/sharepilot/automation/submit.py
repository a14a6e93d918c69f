"""
Final-submit fallback ladder.

The confirmation page enables its submit button only after the transaction PIN
validates remotely, and the button is not always reliably clickable. The ladder
tries progressively more forceful strategies and stops at the first that
completes. When all fail the outcome is unknown, so it raises
SubmissionAmbiguousError rather than reporting success or failure.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Tuple

from ..core.exceptions import FormError, SubmissionAmbiguousError

logger = logging.getLogger(__name__)

SUBMIT_SELECTOR = 'button[type="submit"]'
ENABLED_SUBMIT_SELECTOR = 'button[type="submit"]:not([disabled])'
SUBMIT_LABEL_SELECTOR = 'button[type="submit"] span'

ENABLED_SUBMIT_JS = (
    "() => document.querySelector('button[type=\"submit\"]:not([disabled])') !== null"
)

# Returns true only if a labelled submit button was found and clicked.
FORCE_CLICK_JS = (
    "(label) => {"
    " const buttons = document.querySelectorAll('button[type=\"submit\"]');"
    " for (const button of buttons) {"
    "   const span = button.querySelector('span');"
    "   if (span && span.textContent.trim() === label) { button.click(); return true; }"
    " }"
    " return false;"
    "}"
)


class SubmitLadder:
    def __init__(
        self,
        label: str = "Apply",
        submit_wait_ms: int = 10000,
        label_wait_ms: int = 5000,
        extended_wait: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.label = label
        self.submit_wait_ms = submit_wait_ms
        self.label_wait_ms = label_wait_ms
        self.extended_wait = extended_wait
        self._sleep = sleep

    def _click_enabled(self, engine) -> None:
        engine.wait_for_function(ENABLED_SUBMIT_JS, timeout_ms=self.submit_wait_ms)
        engine.click(ENABLED_SUBMIT_SELECTOR, timeout_ms=self.submit_wait_ms)

    def _click_labelled(self, engine) -> None:
        engine.wait_for(SUBMIT_LABEL_SELECTOR, timeout_ms=self.label_wait_ms)
        text = (engine.text_content(SUBMIT_LABEL_SELECTOR) or "").strip()
        if text != self.label:
            raise FormError(f"submit control is labelled {text!r}, expected {self.label!r}")
        engine.click(SUBMIT_SELECTOR, timeout_ms=self.label_wait_ms)

    def _force_click(self, engine) -> None:
        if not engine.evaluate(FORCE_CLICK_JS, self.label):
            raise FormError(f"no submit button labelled {self.label!r}")

    def _wait_and_retry(self, engine) -> None:
        self._sleep(self.extended_wait)
        self._click_enabled(engine)

    def submit(self, engine) -> int:
        """Run the ladder and return the number (1-4) of the strategy that worked.

        Raises:
            SubmissionAmbiguousError: If every strategy failed
        """
        strategies = [
            self._click_enabled,
            self._click_labelled,
            self._force_click,
            self._wait_and_retry,
        ]
        attempts: List[Tuple[int, str]] = []
        for number, strategy in enumerate(strategies, start=1):
            try:
                strategy(engine)
            except Exception as e:
                logger.debug(f"[submit] strategy {number} failed: {e}")
                attempts.append((number, str(e)))
                continue
            logger.info(f"Application submitted using strategy {number}")
            return number
        raise SubmissionAmbiguousError(
            "All submit strategies failed; the application may or may not have been registered",
            attempts=attempts,
        )
