"""
Idle Require

Core modules:
- api: idle_require() entry point and order validation
- scheduler: priority queue and bounded idle-time drain loop
- dependency_cache: learned feature -> dependency order, persisted lazily
- actions: deferred work vocabulary and ordering rules
- host: feature loader and idle timer collaborators
"""
