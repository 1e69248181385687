"""
Scheduling defaults read from the environment (.env supported).

Route handlers fall back to these when a request omits a parameter.
"""

import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_COURTS = int(os.getenv("DEFAULT_COURTS", "3"))
DEFAULT_MATCH_DURATION_MINUTES = int(os.getenv("DEFAULT_MATCH_DURATION_MINUTES", "45"))
DEFAULT_BREAK_MINUTES = int(os.getenv("DEFAULT_BREAK_MINUTES", "15"))
DEFAULT_GROUP_SIZE = int(os.getenv("DEFAULT_GROUP_SIZE", "4"))

# How long a second generation request for the same tournament waits
SCHEDULE_LOCK_TIMEOUT_SECONDS = float(os.getenv("SCHEDULE_LOCK_TIMEOUT_SECONDS", "30"))
