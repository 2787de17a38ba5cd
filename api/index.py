"""
Vercel Serverless entry point
=============================
Vercel picks up the WSGI `app` exported from api/index.py and routes
/api/search to it. The Flask app from server.py is reused as is.

ANTHROPIC_API_KEY comes from the Vercel project's environment variables. The
process is never started by `python server.py` here, so a missing key does not
stop anything at boot: every /api/search call answers 500 instead.
"""

import sys
import os

# Project root on the import path so server.py and search_proxy.py resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from server import app  # noqa: F401,E402
