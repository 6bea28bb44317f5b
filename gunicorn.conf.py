import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


# Binding
bind = f"0.0.0.0:{_env_int('PORT', 8787)}"

# Logging
accesslog = "-"  # Log to stdout
errorlog = "-"   # Log to stderr
loglevel = os.environ.get("LOG_LEVEL", "info").lower()

# Worker configuration
workers = _env_int("WEB_CONCURRENCY", 3)
worker_class = "gthread"
threads = 4
timeout = 30        # request timeout (seconds)
keepalive = 65

# Shutdown: in-flight requests get SHUTDOWN_GRACE_MS to finish
graceful_timeout = max(1, _env_int("SHUTDOWN_GRACE_MS", 10_000) // 1000)

# Path handling
forwarded_allow_ips = "*"

# Error handling
capture_output = True
enable_stdio_inheritance = True
