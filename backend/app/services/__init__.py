"""
Services Layer

Scheduling workflows over the pure utils:
- Accept sessions and tournament ids
- Own transaction boundaries (commit once, roll back on failure)
- Do NOT depend on HTTP request/response objects
"""
