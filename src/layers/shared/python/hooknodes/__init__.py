"""Workflow plugin nodes for WeCom group-bot webhooks and GitLab."""

__version__ = "0.3.0"
