"""
S3 helpers for the visit-media bucket: client creation, upload and presigned download URLs.
"""
