from sitescout.models.audit_cache import AuditCacheEntry  # noqa: F401
