"""
Wine-list ingestion pipeline.

Modules:
- segmenter: raw text to candidate lines
- cheap_extractor: regex fallback extraction
- scheduler: throttled batch execution and run statistics
- dedup / merge: dedup keys and confidence-respecting field merge
- store: catalog store interface with SQL and in-memory backends
- pipeline: the per-line state machine and run orchestration
- jobs: arq background tasks
"""
