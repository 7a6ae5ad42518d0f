"""
API Repositories - Model access abstraction layer

Resolves which trained model bundle the API serves: an explicit path from
settings, or the latest Approved version of the local model registry.

Pattern: Repository Pattern
"""
