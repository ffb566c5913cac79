"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants (bounds, container names, rounding)
- exceptions: Custom exception hierarchy
- ingress: HTTP body decoding and Azure client factories
"""
