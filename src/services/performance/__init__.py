"""Performance-mode services: song navigation and render selection."""

from .navigator import NavigationState, PerformanceNavigator
from .render_selector import ContentRenderSelector, is_image, is_pdf

__all__ = [
    "ContentRenderSelector",
    "NavigationState",
    "PerformanceNavigator",
    "is_image",
    "is_pdf",
]
