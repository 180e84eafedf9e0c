"""
Core Module Package.

This package contains the shared infrastructure that both the
server and the agent depend on.

Components:
- constants: metric kinds, header names, defaults
- exceptions: custom exception hierarchy
- models: wire record schema
- config: server/agent configuration
- retry: bounded retry policy
- signing: HMAC payload signatures
- logging_config: process logging setup
"""
