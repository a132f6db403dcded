from .renderer import DashboardRenderer, format_task_line, render_frame
from .tail import LiveTail

__all__ = ["DashboardRenderer", "format_task_line", "render_frame", "LiveTail"]
