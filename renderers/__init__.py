"""Output renderers: draw.io diagrams and the Markdown subscription document."""

from renderers.diagram import DiagramRenderer, DiagramReport
from renderers.drawio import DiagramDocument
from renderers.markdown import MarkdownRenderer

__all__ = ["DiagramDocument", "DiagramRenderer", "DiagramReport", "MarkdownRenderer"]
