# Routes package init
"""
Memo Bridge Backend — API Routes Package
=========================================

Route Inventory:
    - memo.py:  every method on every path
                OPTIONS → 204, POST → create memo page, anything else → 405

Routes stay thin: method dispatch and reading the raw body. Everything else
happens in MemoService.
"""
