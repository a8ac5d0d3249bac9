"""
Personalization domain - Listing personalization from seller config to frozen order

Layout:
- schemas.py            Config, submission, snapshot and setup schemas
- repository.py         Database queries and lock-guarded updates
- validators.py         Submission validation rules
- pricing.py            Price impact rules
- config_service.py     ConfigRegistry (seller configs, presets, fonts, palettes, templates)
- submission_service.py SubmissionStore (drafts, cart links, lock)
- snapshot_service.py   SnapshotEngine (freeze, supersede, transfer to order)
- setup_service.py      ReusableSetupManager (save and replay past personalization)
- router.py             /personalization endpoints
"""

__all__ = []
