"""
Asset Document Analyzer Application.

A FastAPI service that reads equipment asset documents (PDF), extracts
asset records with a multimodal model (OpenAI), and reports them as a
sortable table, per-category counts, and an exportable PDF report.
"""

__version__ = "1.0.0"
