# CUI // SP-CTI
"""Storage agent — fetches model artifacts from GCS, S3 and HTTP(S) stores."""

__version__ = "0.1.0"
