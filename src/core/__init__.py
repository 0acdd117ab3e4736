"""Core domain package for scout.

Core contains keyword matching, the dedup/block gate, and notification
composition without any Telegram or storage-specific code, keeping the
business logic portable.
"""
