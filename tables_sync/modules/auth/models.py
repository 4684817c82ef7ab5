# Supabase Auth + profiles
# Users live in Supabase's auth.users table; Supabase Auth handles
# registration, password sign-in, JWT issuance and refresh.
# Display data the rest of the app needs lives in a public profiles table.

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, foreign key to auth.users.id)
- email: text (nullable)
- display_name: text (nullable)
- first_name: text (nullable)
- last_name: text (nullable)
- has_completed_onboarding: boolean (default: false)
- created_at: timestamptz (default: now())

Supabase Auth provides:
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_session() / auth.refresh_session() - Current and refreshed session
- auth.sign_out() - Logout users
"""
