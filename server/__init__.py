"""
Collector Server Package.

Modules:
- main: application factory and storage selection
- router: metric endpoints
- routing: gzip/signature aware route class
- middleware: request logging and error handlers
- cli: process entry point
"""
