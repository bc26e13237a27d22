"""
ASGI entry point.

Used by uvicorn / gunicorn. Raises ConfigError at import time when
SPEECHMATICS_API_KEY is missing, so the worker never starts.
"""

from dotenv import load_dotenv

load_dotenv()

from config import AppConfig  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app(AppConfig.load_from_env())
