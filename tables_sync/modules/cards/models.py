# Supabase tables: cards, comments, nudges
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in the cards, comments and nudges services

"""
Expected Supabase table structure:

cards:
- id: uuid (primary key)
- table_id: uuid (foreign key to tables.id, not null, on delete cascade)
- title: text (nullable)
- body: text (not null)
- link_url: text (nullable)
- author_name: text (not null)
- status: text (not null, default: 'active') - values: active, discussed
- source_reflection_id: uuid (nullable) - reflection the card was shared from
- source_prompt: text (nullable)
- created_at: timestamptz (default: now())

comments:
- id: uuid (primary key)
- card_id: uuid (foreign key to cards.id, not null, on delete cascade)
- body: text (not null)
- author_name: text (not null)
- created_at: timestamptz (default: now())

nudges:
- id: uuid (primary key)
- table_id: uuid (foreign key to tables.id, not null, on delete cascade)
- author_name: text (not null)
- message: text (nullable)
- created_at: timestamptz (default: now())
"""
