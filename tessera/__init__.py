"""Tessera: mail-merge style .docx generation from .xlsx workbooks."""

__version__ = "0.1.0"
