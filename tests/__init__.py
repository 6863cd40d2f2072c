"""Test suite for the Inquiry Router.

This package contains tests for the classifier, the router, DTC detection
and lookup, thread reports, the per-message pipeline, the CLI and the MCP
routing server.
"""
