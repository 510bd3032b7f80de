"""
Link Validator

Batch URL validation service: stores links, probes them concurrently with
bounded retries and reports the ones that are broken.
"""

__version__ = "1.0.0"
