"""
AudioQueue Test Suite

Test Categories:
- unit/: Fast, isolated tests of resolvers, caches, config and helpers
- streaming/: Dispatcher, mirror racing, remuxer and stream proxy
- integration/: HTTP API through the FastAPI test client
"""
