# voicescribe/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Service wiring and startup configuration checks
- db: SQLite store with full-snapshot persistence
- errors: Domain exception hierarchy
- pubsub: Live update broadcasting
- security: Webhook verification and signatures
"""
