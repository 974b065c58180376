"""
Infrastructure Package
======================

Shared technical adapters:
- database: engine and session lifecycle
- llm: OpenAI compatible chat client used for text extraction
"""
