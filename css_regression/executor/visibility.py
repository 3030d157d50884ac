"""Hides noisy elements before screenshots and restores them afterwards."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from css_regression.executor.driver import BrowserDriver, ElementHandle

logger = logging.getLogger(__name__)

SET_VISIBILITY_JS = "([element, value]) => { element.style.visibility = value; }"


@dataclass
class HiddenElement:
    original_visibility: str
    element: ElementHandle


class ElementVisibilityController:
    """Tracks elements whose visibility was overridden.

    Every hide() should be paired with an unhide(): either scoped to the same
    selector or a final unhide() without selector that restores everything.
    """

    def __init__(self, driver: BrowserDriver):
        self.driver = driver
        self.hidden: dict[str, HiddenElement] = {}

    @property
    def hidden_count(self) -> int:
        return len(self.hidden)

    def _set_visibility(self, element: ElementHandle, value: str) -> None:
        self.driver.execute_script(SET_VISIBILITY_JS, [element, value])

    def hide(self, selector: str) -> list[str]:
        """Hide every element matching selector. Returns the ids of newly hidden elements."""
        added: list[str] = []
        for element in self.driver.find_elements(selector):
            element_id = element.element_id
            if element_id in self.hidden:
                continue
            visibility = element.css_value("visibility")
            if visibility == "hidden":
                continue
            self.hidden[element_id] = HiddenElement(original_visibility=visibility, element=element)
            self._set_visibility(element, "hidden")
            added.append(element_id)
        logger.debug("Hid %d element(s) for %s", len(added), selector)
        return added

    def unhide_ids(self, element_ids: list[str]) -> int:
        """Restore only the given tracked elements. Unknown ids are skipped."""
        restored = 0
        for element_id in element_ids:
            entry = self.hidden.pop(element_id, None)
            if entry is None:
                continue
            self._set_visibility(entry.element, entry.original_visibility)
            restored += 1
        return restored

    def unhide(self, selector: str | None = None) -> int:
        """Restore elements matching selector, or every tracked element if None."""
        if selector is None:
            restored = len(self.hidden)
            for entry in self.hidden.values():
                self._set_visibility(entry.element, entry.original_visibility)
            self.hidden.clear()
            logger.debug("Restored %d hidden element(s)", restored)
            return restored

        elements = self.driver.find_elements(selector)
        for element in elements:
            entry = self.hidden.pop(element.element_id, None)
            visibility = entry.original_visibility if entry else "visible"
            self._set_visibility(element, visibility)
        logger.debug("Restored %d element(s) for %s", len(elements), selector)
        return len(elements)
