"""Core utilities and shared application primitives.

Everything the upload pipeline is built from lives here: configuration,
typed errors, name generation, content sniffing, allow-list checks and
file-system helpers, next to the JSON, slug and remote-push helpers.
"""
