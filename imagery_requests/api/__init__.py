"""HTTP boundary: request parsing and exception-to-status translation."""
