"""LocalS3: an S3-compatible object storage emulator backed by a local directory."""

__version__ = "0.1.0"
