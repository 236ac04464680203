"""Core domain package for yapswatch.

Core contains score snapshots, delta computation, and the tracking scheduler
without any Telegram, HTTP or storage-specific code, keeping the business
logic portable.
"""
