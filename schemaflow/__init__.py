"""
schemaflow: JSON document import with schema inference and evolution.

Infers collection schemas from batches of JSON documents, merges them
across batches and pushes schema updates only when they change.
"""

__version__ = "0.1.0"
