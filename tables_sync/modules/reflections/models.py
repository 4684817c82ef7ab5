# Supabase table: reflections
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

reflections:
- id: uuid (primary key)
- user_id: uuid (foreign key to auth.users.id, not null)
- body: text (not null)
- prompt: text (nullable) - daily prompt the reflection answered
- reflection_type: text (not null) - values: quick_win, deep_reflection
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

Row-level security: visible to and writable by user_id only. Sharing never
exposes the row; it copies the content into a new cards row.
"""
