"""
PDF Form Auto-Fill Backend Application.

A FastAPI service that extracts form field values from PDF documents
using hosted LLMs (OpenRouter), with token-cost estimation.
"""

__version__ = "1.0.0"
