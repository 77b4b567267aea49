"""
Nightcrawler - attack-surface fuzzing and injection scanning toolkit

Mutates a baseline HTTP request with attack vectors in query parameters,
headers and path segments, replays every variant and flags reflections.
Also ships a grammar driven fuzz payload generator.
"""

__version__ = "1.0.0"
__author__ = "Nightcrawler Team"
__license__ = "MIT"

from nightcrawler.core.config import Config

__all__ = [
    "Config",
    "__version__",
]
