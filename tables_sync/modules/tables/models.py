# Supabase table: tables
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

tables:
- id: uuid (primary key)
- title: text (not null)
- context: text (nullable)
- status: text (not null, default: 'active') - values: active, archived, discussed
- members: text[] (not null, default: '{}') - display names, no duplicates
- next_reminder_date: timestamptz (nullable)
- owner_id: uuid (foreign key to auth.users.id, not null)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

RPC functions:
- add_table_member(p_table_id uuid, p_member_name text) - appends the name if absent
- remove_table_member(p_table_id uuid, p_member_name text) - removes the name

Row-level security: a row is visible to its owner and to every user with a
matching table_shares row. Only the owner may delete; deleting cascades to
table_shares, cards and nudges.
"""
