"""
bucketfm: file-manager backend over a Google Cloud Storage bucket
Built with FastAPI + Uvicorn + google-cloud-storage
"""

__version__ = "1.0.0"
__author__ = "bucketfm"
__description__ = "File-manager API facade over cloud storage buckets"
