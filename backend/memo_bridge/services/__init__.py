# Services package init
"""
Memo Bridge Backend — Services Layer
=====================================

Service Inventory:
    - title:          generate_title() (JST timestamp page titles)
    - auth:           authenticate() (bearer token check)
    - upstream_base:  CsrfAcquirer / PageImporter interfaces
    - csrf_service:   PageCsrfAcquirer, UserApiCsrfAcquirer
    - import_service: JsonPageImporter, MultipartPageImporter
    - memo_service:   MemoService, the per-request orchestrator
"""
