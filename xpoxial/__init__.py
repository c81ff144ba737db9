"""
Xpoxial Search - multi-source web search aggregation back end.

This package contains:
- Provider clients, the aggregation cascade, news and multi-engine search (`tools.search`).
- Generative-model flows for answers, summaries, ranking and chat (`services.assistant`).
- The action layer, HTTP server and CLI the UI talks to (`services.gateway`, `cli`).
"""

__version__ = "0.1.0"
