# smooth_operator/types.py

"""Response models returned by the Agent Tools server."""

import base64
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class MechanismType(str, Enum):
    """AI mechanism the server uses to locate a described UI element."""

    SCREENGRASP2 = "screengrasp2"
    SCREENGRASP2_LOW = "screengrasp2-low"
    SCREENGRASP_MEDIUM = "screengrasp-medium"
    SCREENGRASP_HIGH = "screengrasp-high"
    LLABS = "llabs"
    ANTHROPIC_COMPUTER_USE = "anthropic-computer-use"
    OPENAI_COMPUTER_USE = "openai-computer-use"
    QWEN25_VL_72B = "qwen25-vl-72b"


class ApiModel(BaseModel):
    """Base for server DTOs: camelCase on the wire, unknown fields kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_pascal_case(cls, data: Any) -> Any:
        # The server may serialize with .NET default (PascalCase) names
        if isinstance(data, dict):
            return {
                (k[:1].lower() + k[1:] if isinstance(k, str) else k): v
                for k, v in data.items()
            }
        return data

    def to_json_string(self) -> str:
        """Indented JSON without nulls, e.g. to hand the result to an LLM."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


# --- Generic results ---


class SimpleResponse(ApiModel):
    success: bool = False
    message: Optional[str] = None
    internal_message: Optional[str] = None

    def __str__(self) -> str:
        return self.message or ""


class ActionResponse(ApiModel):
    success: bool = False
    message: Optional[str] = None
    result_value: Optional[str] = None

    def __str__(self) -> str:
        return self.message or ""


class ScreenGrasp2Response(ActionResponse):
    """Coordinates of an element found by description."""

    x: Optional[int] = None
    y: Optional[int] = None
    status: Optional[str] = None


class ChromeScriptResponse(ActionResponse):
    result: Optional[str] = None


class CSharpCodeResponse(ActionResponse):
    result: Optional[str] = None


# --- Screenshot ---


class ScreenshotResponse(ApiModel):
    success: bool = True
    image_base64: Optional[str] = None
    timestamp: Optional[datetime] = None
    message: Optional[str] = None

    @property
    def image_bytes(self) -> bytes:
        return base64.b64decode(self.image_base64 or "")

    @property
    def image_mime_type(self) -> str:
        return "image/jpeg"

    def __str__(self) -> str:
        return self.message or ""


class Point(ApiModel):
    x: int = 0
    y: int = 0

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


# --- Chrome ---


class ChromeTab(ApiModel):
    id: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    is_active: bool = False


class ChromeTabDetails(ApiModel):
    title: Optional[str] = None
    url: Optional[str] = None
    content: Optional[str] = None
    elements: Optional[List[Dict[str, Any]]] = None
    summary: Optional[str] = None


class ChromeElementInfo(ApiModel):
    smooth_op_id: Optional[str] = None
    tag_name: Optional[str] = None
    css_selector: Optional[str] = None
    inner_text: Optional[str] = None
    is_visible: Optional[bool] = None
    score: float = 0.0
    role: Optional[str] = None
    value: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    class_name: Optional[str] = None
    semantic: Optional[str] = None
    data_attributes: Optional[str] = None
    truncated_html: Optional[str] = None
    bounding_rect: Optional[List[int]] = None
    center_point: Optional[Point] = None


class TabData(ApiModel):
    id: Optional[str] = None
    url: Optional[str] = None
    is_active: Optional[bool] = None
    html: Optional[str] = None
    text: Optional[str] = None
    id_string: Optional[str] = None
    tab_nr: int = 0


class ChromeOverview(ApiModel):
    instance_id: Optional[str] = None
    tabs: Optional[List[TabData]] = None
    last_update: Optional[datetime] = None


# --- Windows UI automation ---


class Control(ApiModel):
    """A node of a window's UI automation tree."""

    id: Optional[str] = None
    name: Optional[str] = None
    control_type: Optional[str] = None
    supports_set_value: Optional[bool] = None
    supports_invoke: Optional[bool] = None
    current_value: Optional[str] = None
    children: Optional[List["Control"]] = None
    # Only present when the server sends it; never serialized back
    parent: Optional["Control"] = Field(default=None, exclude=True, repr=False)

    def children_recursive(self, include_self: bool = False) -> Iterator["Control"]:
        """Depth-first walk over all descendants."""
        if include_self:
            yield self
        for child in self.children or []:
            yield child
            yield from child.children_recursive()

    def parents_recursive(self) -> Iterator["Control"]:
        node = self
        while node.parent is not None:
            yield node.parent
            node = node.parent

    @property
    def parent_window(self) -> Optional["Control"]:
        return next(
            (p for p in self.parents_recursive() if p.control_type == "Window"), None
        )

    def __str__(self) -> str:
        value_info = f" Value='{self.current_value}'" if self.current_value else ""
        return f"{self.control_type or 'Control'} '{self.name or self.id}'{value_info}"


class WindowInfo(ApiModel):
    id: Optional[str] = None
    title: Optional[str] = None
    executable_path: Optional[str] = None
    is_foreground: Optional[bool] = None
    process_name: Optional[str] = None
    is_minimized: Optional[bool] = None
    detail_infos: Optional["WindowDetailResponse"] = None


class WindowDetailInfos(ApiModel):
    note: Optional[str] = None
    window: Optional[WindowInfo] = None
    user_interface_elements: Optional[Control] = None


class WindowDetailResponse(ApiModel):
    details: Optional[WindowDetailInfos] = None
    message: Optional[str] = None


class FocusInformation(ApiModel):
    focused_element: Optional[Control] = None
    focused_element_parent_window: Optional[WindowInfo] = None
    some_other_elements_in_same_window_that_might_be_relevant: Optional[List[Control]] = None
    current_chrome_tab_most_relevant_elements: Optional[List[ChromeElementInfo]] = None
    is_chrome: bool = False
    note: Optional[str] = None


class InstalledProgram(ApiModel):
    name: Optional[str] = None
    executable_path: Optional[str] = None


class DesktopIcon(ApiModel):
    name: Optional[str] = None
    path: Optional[str] = None


class TaskbarIcon(ApiModel):
    name: Optional[str] = None
    path: Optional[str] = None


class OverviewResponse(ApiModel):
    """Open windows, Chrome instances and focus state of the machine."""

    windows: Optional[List[WindowInfo]] = None
    chrome_instances: Optional[List[ChromeOverview]] = None
    focus_info: Optional[FocusInformation] = None
    top_pinned_taskbar_icons: Optional[List[TaskbarIcon]] = None
    top_desktop_icons: Optional[List[DesktopIcon]] = None
    top_installed_programs: Optional[List[InstalledProgram]] = None
    important_note: Optional[str] = None


Control.model_rebuild()
WindowInfo.model_rebuild()
