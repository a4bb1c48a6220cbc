"""
Database Schema Definitions

Contains all table structure definitions.
"""

from __future__ import annotations

from typing import List

# Table structure SQL statements
TABLE_STATEMENTS = [
    # Key/value application state (cassette library, session snapshot)
    """
    CREATE TABLE IF NOT EXISTS app_state (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def get_all_schema_statements() -> List[str]:
    """Get all schema statements in execution order"""
    return list(TABLE_STATEMENTS)
