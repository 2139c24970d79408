"""
Business License Verifier.

Batch lookup and two-factor verification of company registrations against
the Baidu AI Cloud business license API, with bounded concurrency, retry
and Markdown/Excel export.
"""

__version__ = "1.0.0"
