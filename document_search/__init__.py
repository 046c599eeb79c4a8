"""
Document search core package.

This package currently focuses on the indexing subsystem. It exposes
dataclasses for page entries, search results and job state, pluggable
document loader / page extractor interfaces, a batch scheduler that
extracts pages with cooperative yields, and a job controller that admits
one ingestion at a time and answers ranked queries against the index.
"""
