# smooth_operator/api.py

"""Endpoint groups of the Agent Tools server, exposed on SmoothOperatorClient."""

from typing import TYPE_CHECKING, Optional

from smooth_operator.types import (
    ActionResponse,
    ChromeScriptResponse,
    ChromeTabDetails,
    CSharpCodeResponse,
    MechanismType,
    OverviewResponse,
    ScreenGrasp2Response,
    ScreenshotResponse,
    SimpleResponse,
    WindowDetailInfos,
)

if TYPE_CHECKING:
    from smooth_operator.client import SmoothOperatorClient


class _ApiGroup:
    def __init__(self, client: "SmoothOperatorClient"):
        self._client = client

    def __repr__(self) -> str:
        return type(self).__name__


def _described(description: str, mechanism: MechanismType) -> dict:
    # The server reads "Mechanism" with a capital M
    return {"taskDescription": description, "Mechanism": MechanismType(mechanism).value}


class ScreenshotApi(_ApiGroup):
    """Screenshots and AI element location."""

    def take(self) -> ScreenshotResponse:
        """Capture the whole screen as a base64 encoded image."""
        return self._client.get("/tools-api/screenshot", ScreenshotResponse)

    def find_ui_element(
        self,
        user_element_description: str,
        mechanism: MechanismType = MechanismType.SCREENGRASP2,
    ) -> ScreenGrasp2Response:
        """Use AI vision on a fresh screenshot to find the x/y of a described element."""
        return self._client.post(
            "/tools-api/screenshot/find-ui-element",
            _described(user_element_description, mechanism),
            ScreenGrasp2Response,
        )


class SystemApi(_ApiGroup):
    """Overview of the machine and launching applications."""

    def get_overview(self) -> OverviewResponse:
        """Open windows, Chrome tabs, focus info, pinned and installed programs."""
        return self._client.post("/tools-api/system/overview", {}, OverviewResponse)

    def get_window_details(self, window_id: str) -> WindowDetailInfos:
        """UI automation tree of one window (ids come from get_overview)."""
        return self._client.post(
            "/tools-api/automation/get-details", {"windowId": window_id}, WindowDetailInfos
        )

    def open_chrome(
        self, url: Optional[str] = None, strategy: Optional[str] = None
    ) -> SimpleResponse:
        return self._client.post(
            "/tools-api/system/open-chrome",
            {"url": url, "strategy": strategy},
            SimpleResponse,
        )

    def open_application(self, app_name_or_path: str) -> SimpleResponse:
        """Launch an executable by full path, or by name if it is on PATH."""
        return self._client.post(
            "/tools-api/system/open-application",
            {"appNameOrPath": app_name_or_path},
            SimpleResponse,
        )


class MouseApi(_ApiGroup):
    """Mouse input by screen coordinates (0,0 is top-left) or by description."""

    def _at(self, path: str, x: int, y: int) -> ActionResponse:
        return self._client.post(path, {"x": x, "y": y}, ActionResponse)

    def click(self, x: int, y: int) -> ActionResponse:
        return self._at("/tools-api/mouse/click", x, y)

    def double_click(self, x: int, y: int) -> ActionResponse:
        return self._at("/tools-api/mouse/doubleclick", x, y)

    def right_click(self, x: int, y: int) -> ActionResponse:
        return self._at("/tools-api/mouse/rightclick", x, y)

    def move(self, x: int, y: int) -> ActionResponse:
        return self._at("/tools-api/mouse/move", x, y)

    def drag(self, start_x: int, start_y: int, end_x: int, end_y: int) -> ActionResponse:
        return self._client.post(
            "/tools-api/mouse/drag",
            {"startX": start_x, "startY": start_y, "endX": end_x, "endY": end_y},
            ActionResponse,
        )

    def scroll(
        self, x: int, y: int, clicks: int, direction: Optional[str] = None
    ) -> ActionResponse:
        """
        Scroll the wheel at a position.

        Args:
            clicks: Number of wheel clicks; positive scrolls down, negative up.
            direction: "up" or "down". Overrides the sign of clicks if given.
        """
        if direction is None:
            direction = "down" if clicks > 0 else "up"
        return self._client.post(
            "/tools-api/mouse/scroll",
            {"x": x, "y": y, "clicks": abs(clicks), "direction": direction},
            ActionResponse,
        )

    def click_by_description(
        self,
        user_element_description: str,
        mechanism: MechanismType = MechanismType.SCREENGRASP2,
    ) -> ActionResponse:
        """Find an element with AI vision and click it. Prefer click() if you know the coordinates."""
        return self._client.post(
            "/tools-api/mouse/click-by-description",
            _described(user_element_description, mechanism),
            ActionResponse,
        )

    def double_click_by_description(
        self,
        user_element_description: str,
        mechanism: MechanismType = MechanismType.SCREENGRASP2,
    ) -> ActionResponse:
        return self._client.post(
            "/tools-api/mouse/doubleclick-by-description",
            _described(user_element_description, mechanism),
            ActionResponse,
        )

    def right_click_by_description(
        self,
        user_element_description: str,
        mechanism: MechanismType = MechanismType.SCREENGRASP2,
    ) -> ActionResponse:
        return self._client.post(
            "/tools-api/mouse/rightclick-by-description",
            _described(user_element_description, mechanism),
            ActionResponse,
        )

    def move_by_description(
        self,
        user_element_description: str,
        mechanism: MechanismType = MechanismType.SCREENGRASP2,
    ) -> ActionResponse:
        return self._client.post(
            "/tools-api/mouse/move-by-description",
            _described(user_element_description, mechanism),
            ActionResponse,
        )

    def drag_by_description(
        self, start_element_description: str, end_element_description: str
    ) -> ActionResponse:
        return self._client.post(
            "/tools-api/mouse/drag-by-description",
            {
                "startElementDescription": start_element_description,
                "endElementDescription": end_element_description,
            },
            ActionResponse,
        )


class KeyboardApi(_ApiGroup):
    def type(self, text: str) -> ActionResponse:
        return self._client.post("/tools-api/keyboard/type", {"text": text}, ActionResponse)

    def press(self, key: str) -> ActionResponse:
        """Press a key or combination, e.g. "Ctrl+C"."""
        return self._client.post("/tools-api/keyboard/press", {"key": key}, ActionResponse)

    def type_at_element(self, element_description: str, text_to_type: str) -> ActionResponse:
        """Find an element with AI vision, click it, then type into it."""
        return self._client.post(
            "/tools-api/keyboard/type-at-element",
            {"elementDescription": element_description, "textToType": text_to_type},
            ActionResponse,
        )


class ChromeApi(_ApiGroup):
    """Control of the Playwright-managed Chrome instance."""

    def open_chrome(
        self, url: Optional[str] = None, strategy: Optional[str] = None
    ) -> SimpleResponse:
        return self._client.post(
            "/tools-api/system/open-chrome",
            {"url": url, "strategy": strategy},
            SimpleResponse,
        )

    def explain_current_tab(self) -> ChromeTabDetails:
        """Describe the current tab, including CSS selectors of interactive elements."""
        return self._client.post(
            "/tools-api/chrome/current-tab/explain", {}, ChromeTabDetails
        )

    def navigate(self, url: str) -> ActionResponse:
        return self._client.post("/tools-api/chrome/navigate", {"url": url}, ActionResponse)

    def reload(self) -> ActionResponse:
        return self._client.post("/tools-api/chrome/reload", {}, ActionResponse)

    def new_tab(self, url: Optional[str] = None) -> ActionResponse:
        return self._client.post("/tools-api/chrome/new-tab", {"url": url}, ActionResponse)

    def click_element(self, selector: str) -> ActionResponse:
        """Click by CSS selector (selectors come from explain_current_tab)."""
        return self._client.post(
            "/tools-api/chrome/click-element", {"selector": selector}, ActionResponse
        )

    def go_back(self) -> ActionResponse:
        return self._client.post("/tools-api/chrome/go-back", {}, ActionResponse)

    def simulate_input(self, selector: str, text: str) -> ActionResponse:
        return self._client.post(
            "/tools-api/chrome/simulate-input",
            {"selector": selector, "text": text},
            ActionResponse,
        )

    def get_dom(self) -> ActionResponse:
        return self._client.post("/tools-api/chrome/get-dom", {}, ActionResponse)

    def get_text(self) -> ActionResponse:
        return self._client.post("/tools-api/chrome/get-text", {}, ActionResponse)

    def execute_script(self, script: str) -> ChromeScriptResponse:
        """Run JavaScript in the current tab."""
        return self._client.post(
            "/tools-api/chrome/execute-script", {"script": script}, ChromeScriptResponse
        )

    def generate_and_execute_script(self, task_description: str) -> ChromeScriptResponse:
        return self._client.post(
            "/tools-api/chrome/generate-and-execute-script",
            {"taskDescription": task_description},
            ChromeScriptResponse,
        )


class AutomationApi(_ApiGroup):
    """Windows UI Automation on elements and windows by id or description."""

    def open_application(self, app_name_or_path: str) -> SimpleResponse:
        return self._client.post(
            "/tools-api/system/open-application",
            {"appNameOrPath": app_name_or_path},
            SimpleResponse,
        )

    def invoke(self, element_id: str) -> SimpleResponse:
        """Invoke the default action (e.g. press a button) of an element."""
        return self._client.post(
            "/tools-api/automation/invoke", {"elementId": element_id}, SimpleResponse
        )

    def set_value(self, element_id: str, value: str) -> SimpleResponse:
        return self._client.post(
            "/tools-api/automation/set-value",
            {"elementId": element_id, "value": value},
            SimpleResponse,
        )

    def set_focus(self, element_id: str) -> SimpleResponse:
        return self._client.post(
            "/tools-api/automation/set-focus", {"elementId": element_id}, SimpleResponse
        )

    def get_window_details(self, window_id: str) -> WindowDetailInfos:
        return self._client.post(
            "/tools-api/automation/get-details", {"windowId": window_id}, WindowDetailInfos
        )

    def bring_to_front(self, window_id: str) -> SimpleResponse:
        return self._client.post(
            "/tools-api/automation/bring-to-front", {"windowId": window_id}, SimpleResponse
        )

    def click_element(self, description: str) -> ActionResponse:
        return self._client.post(
            "/tools-api/automation/click-element", {"description": description}, ActionResponse
        )

    def type_in_element(self, description: str, text: str) -> ActionResponse:
        return self._client.post(
            "/tools-api/automation/type-in-element",
            {"description": description, "text": text},
            ActionResponse,
        )

    def get_element_text(self, description: str) -> ActionResponse:
        return self._client.post(
            "/tools-api/automation/get-element-text",
            {"description": description},
            ActionResponse,
        )


class CodeApi(_ApiGroup):
    """C# code execution on the server machine."""

    def execute_csharp(self, code: str) -> CSharpCodeResponse:
        return self._client.post("/tools-api/code/csharp", {"code": code}, CSharpCodeResponse)

    def generate_and_execute_csharp(self, task_description: str) -> CSharpCodeResponse:
        """Let the server generate C# for a task description and run it."""
        return self._client.post(
            "/tools-api/code/csharp/generate-and-execute",
            {"taskDescription": task_description},
            CSharpCodeResponse,
        )
