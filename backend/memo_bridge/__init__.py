"""
Memo Bridge Backend — Application Package Initializer
======================================================

What: Marks `memo_bridge` as a Python package.
Why:  Enables imports like `from memo_bridge.config import Settings`.
Who:  Used by uvicorn (`memo_bridge.main:app`) and pytest.

Architecture Note:

    ┌─────────────────────────────────────┐
    │         Routes (HTTP layer)         │  ← method gating, raw body
    ├─────────────────────────────────────┤
    │     MemoService (orchestrator)      │  ← auth → validate → title → CSRF → import
    ├─────────────────────────────────────┤
    │  Upstream services (CSRF, import)   │  ← Scrapbox over httpx
    └─────────────────────────────────────┘

    The service holds no state between requests.
"""

__version__ = "1.0.0"
