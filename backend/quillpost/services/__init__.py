# Services package init
"""
Quillpost Backend — Services Layer
===================================

Service Inventory:
    Content
    - format_converter:  html ⇄ structured tree ⇄ markdown, word count
    - document_tree:     HTML ⇄ structured node tree
    - embeds:            @[type](url) embed tokens and their HTML blocks

    Drafts
    - DraftService:      server-side snapshots over an AsyncSession
    - DraftStore:        interface shared by the editor-side stores
    - DraftApiClient:    remote drafts API (primary tier)
    - LocalDraftStore:   on-disk ring buffer (fallback tier)
    - TieredDraftWriter: primary + fallback composition, merge_versions

    Editing session
    - AutoSaveController: debounce, periodic save, unload hook, recovery
"""
