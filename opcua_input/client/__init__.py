"""
OPC UA input client components.

This package provides:
- Session lifecycle management
- Address space browsing
- Batched polling of discovered tags
"""

from .session_manager import SessionManager
from .node_browser import NodeTreeBrowser, MAX_BROWSE_DEPTH
from .poll_loop import PollLoop, FATAL_STATUS_CODES, is_fatal

__all__ = [
    'SessionManager',
    'NodeTreeBrowser',
    'MAX_BROWSE_DEPTH',
    'PollLoop',
    'FATAL_STATUS_CODES',
    'is_fatal',
]
