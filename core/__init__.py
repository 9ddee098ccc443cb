"""Core (UI-agnostic) product dashboard logic.

This package contains:
- spreadsheet decoding and the wide-to-long daily expansion
- selection state and its reducers
- summary and chart-matrix projections (JSON-serializable payloads)
- token verification and sqlite persistence for the API
"""
