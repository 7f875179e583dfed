"""Core pipeline: LLM transport, parsing, integrity, caching and workflow."""
