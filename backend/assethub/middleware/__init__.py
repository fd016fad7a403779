"""
HTTP middleware: request correlation IDs and access logging.
"""
