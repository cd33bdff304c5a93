"""Web chat backend: Google sign-in, OpenAI replies, per-user history files.

Typical usage
-------------
from webchat import create_app
app = create_app()

or, from the provided launcher:

python scripts/run_server.py --host 127.0.0.1 --port 3000
"""

from __future__ import annotations

from .server import create_app

__all__ = ["create_app", "__version__"]

__version__ = "0.1.0"
