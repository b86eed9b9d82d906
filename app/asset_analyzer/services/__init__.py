"""
Services package for the asset analyzer.

Contains:
- pdf_service: PDF page rasterization
- ai: OpenAI integration for asset extraction
- session_service: Analysis session state machine
- report_service: Chart, table and PDF report rendering
"""

from .ai import AIService
from .pdf_service import PDFService
from .session_service import SessionController

__all__ = ["PDFService", "AIService", "SessionController"]
