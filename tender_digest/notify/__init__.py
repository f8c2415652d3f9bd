"""Digest rendering and delivery."""

from .notifier import EmailNotifier
from .render import render_error, render_report

__all__ = ["EmailNotifier", "render_error", "render_report"]
