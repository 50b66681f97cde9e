"""Telegram protocol engine and MCP server for SICK LMS1xx laser scanners."""

from .device import LMS1xx
