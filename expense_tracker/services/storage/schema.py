"""
Database schema definitions for Expense Tracker (SQLite)
"""

SCHEMA = """
-- Live expense table; body holds the record as JSON, id is its JSON-encoded key
CREATE TABLE IF NOT EXISTS expenses (
    id TEXT PRIMARY KEY,
    body TEXT NOT NULL
);

-- Backup log; ids are never reused
CREATE TABLE IF NOT EXISTS backups (
    backup_id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    label TEXT NOT NULL,
    type TEXT NOT NULL CHECK(type IN ('auto', 'manual')),
    count INTEGER NOT NULL,
    data TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_backups_timestamp ON backups(timestamp);
"""
