# Supabase table: table_shares
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

table_shares:
- id: uuid (primary key)
- table_id: uuid (foreign key to tables.id, not null, on delete cascade)
- shared_with_user_id: uuid (foreign key to auth.users.id, not null)
- permission: text (not null, default: 'write')
- created_at: timestamptz (default: now())
- unique constraint on (table_id, shared_with_user_id)

RPC functions:
- find_user_by_email(search_email text) -> (user_id, user_email, display_name)
  security definer, so the lookup is not limited by profiles RLS
"""
