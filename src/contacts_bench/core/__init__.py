"""Cross-cutting runtime concerns: logging and tracing."""
