"""
Per-entity data services.

Each module wraps the Supabase tables of one entity; functions take a
`SupabaseClient` first and return pydantic models.
"""
