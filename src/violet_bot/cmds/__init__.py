"""Command definitions (templates instantiated by `registry`)."""
