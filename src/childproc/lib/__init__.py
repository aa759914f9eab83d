"""Core childproc library exports."""

from childproc.lib.events import EventTarget
from childproc.lib.exec import Child, ExecOptions, ExecResult

__all__ = ["Child", "EventTarget", "ExecOptions", "ExecResult"]
