import os

# Settings are read when app.main is imported; keep test runs free of exporters.
os.environ.setdefault("MJ_OTEL_ENABLED", "false")
