"""Load generation against NFS and S3 data endpoints."""
