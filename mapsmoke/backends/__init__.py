"""
Browser backends for the smoke harness.

- BrowserBackend: protocol every backend implements
- PlaywrightBackend: default backend over a Playwright Page
"""

from .playwright_backend import PlaywrightBackend
from .protocol import BrowserBackend

__all__ = [
    "BrowserBackend",
    "PlaywrightBackend",
]
