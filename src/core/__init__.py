"""Core domain package for autolinker.

Core contains the rule model, compilation, substitution and markdown-aware
rewriting without any Telegram or storage-specific code, keeping the
business logic portable.
"""
