"""
Services Module

Domain logic behind the HTTP routers:
- licensing: License/quota authority (token redemption, seat and storage limits)
- sessions: Multi-tenant session authority (login, company selection, scoping)
- companies: Company profile, member roles and removal, super-admin company listing
- devices: Global device registry
- videos: Video storage and company-scoped video access
"""
