"""
Permission feature module.

Catalog of tenant permissions, the resolver that merges role permissions
with per-user overrides, and the gate dependencies that protect routes.
"""
