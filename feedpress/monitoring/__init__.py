"""
FeedPress Monitoring Module
===========================

Content heuristics and in-memory ingestion diagnostics.
"""
