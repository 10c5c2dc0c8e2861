# env vars + constants
import os

NODE_ID = os.getenv("NODE_ID", "nodeX")
PORT = int(os.getenv("PORT", "8000"))
EVENT_SINKS = [s.strip() for s in os.getenv("EVENT_SINKS", "").split(",") if s.strip()]

NOTIFY_TIMEOUT = float(os.getenv("NOTIFY_TIMEOUT", "1.5"))
EVENT_HISTORY = int(os.getenv("EVENT_HISTORY", "100"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
