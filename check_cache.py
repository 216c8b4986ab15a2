#!/usr/bin/env python3
"""
Script to examine the similar-kanji cache and see what is stored and when
it expires.
"""

import sys
import os
import datetime

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_similar_kanji import db
from llm_similar_kanji.cache import TTLCache, now_ms
from llm_similar_kanji.config import API_KEY_STORE_KEY


def check_cache_contents() -> None:
    """List every cache entry with its size and expiry."""
    print("🔍 Examining Similar Kanji Cache Contents")
    print("=" * 60)

    if not db.is_db_initialized():
        print("❌ Database is not initialized. Run 'llm wk-init-db' first.")
        return

    cache = TTLCache()
    now = now_ms()
    for key in db.list_keys():
        if key == API_KEY_STORE_KEY:
            print(f"\n🔑 {key}: (stored)")
            continue
        raw = db.get_value(key) or ""
        expires_at = cache.expires_at(key)
        if expires_at is None:
            state = "unreadable"
        elif expires_at <= now:
            state = "expired"
        else:
            left = datetime.timedelta(milliseconds=expires_at - now)
            state = f"fresh, {left} left"
        print(f"\n📦 {key}")
        print(f"   Size: {len(raw)} bytes | {state}")

    progress = db.get_progress("default_user")
    if progress:
        print(f"\n📊 default_user: {progress['correct_answers']}/{progress['total_reviews']} correct ({progress['accuracy']:.1f}%)")


if __name__ == "__main__":
    check_cache_contents()
