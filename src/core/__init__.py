"""Core domain package for chatledger.

Core contains parsing, watermark rules, and the ingestion state machine
without any Telegram, spreadsheet, or filesystem-specific code, keeping the
extraction logic portable.
"""
