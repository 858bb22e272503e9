"""
Package reference canonicalization and validation for an MCP server registry.

Entry points:
- canonical.canonicalize / canonicalize_server: legacy -> canonical package documents
- validators.validate_package: publish-time format, policy and ownership checks
- migration.MigrationRunner: one-shot rewrite of stored records
"""
__version__ = "0.1.0"
