"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Default super admin creation on first startup
- clock: Timezone-aware "now"
- db: Database configuration and connection management
- errors: Domain error taxonomy and its HTTP mapping
- security: Password hashing, session cookie signing, license tokens
"""
