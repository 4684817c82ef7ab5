# Supabase table: realtime_notifications
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

realtime_notifications:
- id: uuid (primary key)
- user_id: uuid (recipient, not null)
- event_type: text (not null) - table_deleted, share_created, member_added
- payload: jsonb (not null, default: '{}') - string to string map
- processed: boolean (not null, default: false)
- created_at: timestamptz (default: now())

Realtime publication must include this table so recipients receive INSERTs
filtered by user_id. Any authenticated user may insert; only the recipient
may select or update.
"""
