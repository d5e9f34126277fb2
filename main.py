"""Rank It Pro Backend API - Main entry point"""
import json
import logging
import os
import signal
import sys
from datetime import datetime

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from rankitpro.application import create_app


# =====================================================================
# Structured JSON logging for production
# =====================================================================
class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging in production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def is_production() -> bool:
    return os.environ.get("FLASK_ENV") == "production"


def setup_logging():
    """Configure logging: JSON in production, human-readable in development."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if is_production():
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    root.addHandler(handler)

    # Reduce noise from chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)


setup_logging()
logger = logging.getLogger("rankitpro")

app = create_app()


def graceful_shutdown(signum, frame):
    """Handle SIGTERM/SIGINT for graceful shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info(f"Received {sig_name}, shutting down")
    sys.exit(0)


if __name__ == "__main__":
    signal.signal(signal.SIGTERM, graceful_shutdown)
    signal.signal(signal.SIGINT, graceful_shutdown)

    port = int(os.environ.get("PORT", 8000))
    host = "0.0.0.0" if is_production() else "127.0.0.1"

    logger.info(f"Starting Rank It Pro API on http://{host}:{port}")
    logger.info(f"  Frontend URL: {os.environ.get('FRONTEND_URL', 'Not set')}")
    logger.info(f"  Stripe key configured: {'Yes' if os.environ.get('STRIPE_SECRET_KEY') else 'No'}")
    logger.info(f"  Webhook secret configured: {'Yes' if os.environ.get('STRIPE_WEBHOOK_SECRET') else 'No'}")

    app.run(host=host, port=port, debug=not is_production(), use_reloader=False)
