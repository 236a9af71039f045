# Routes package init
"""
Quillpost Backend — API Routes Package
=======================================

Route Inventory:
    - drafts.py:   POST   /api/drafts          (save a new snapshot)
                   GET    /api/drafts          (list snapshots, newest first)
                   GET    /api/drafts/{id}     (get one snapshot)
                   DELETE /api/drafts/{id}     (delete one snapshot)
    - convert.py:  POST   /api/convert         (html / json / markdown conversion)
    - health.py:   GET    /health              (service health check)

Routes stay thin: read the request, resolve the user, call a service,
shape the response. Business rules live in services.
"""
