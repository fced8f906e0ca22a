# python
"""terminality package"""
__version__ = "0.1"

from terminality.env import load_env

# Load .env values at import time so settings come from python-dotenv instead of manual parsing.
load_env()
