"""
SQLite schema for coordinator state that must survive restarts.

This module defines the database schema for:
- Decommission jobs (single-flight registry with optimistic concurrency)
- Member addresses (last address each member was seen ready at)

Every job update bumps `version`; writers update with
`WHERE name = ? AND version = ?` so concurrent coordinators cannot
overwrite each other's changes unnoticed.
"""

JOBS_SCHEMA_SQL = """
-- Decommission jobs keyed by deterministic job name
CREATE TABLE IF NOT EXISTS decommission_jobs (
    name TEXT PRIMARY KEY,                 -- pod-decommission-<member>
    target_member TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'running', -- running, succeeded, failed
    owner TEXT NOT NULL DEFAULT '',        -- tracker instance running the job
    started_at TEXT,                       -- ISO8601 timestamp
    heartbeat_at TEXT,                     -- refreshed while running
    finished_at TEXT,
    error TEXT,
    version INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_jobs_status
ON decommission_jobs(status);
"""

ADDRESSES_SCHEMA_SQL = """
-- Last known address per member, kept after the member is gone
CREATE TABLE IF NOT EXISTS member_addresses (
    member TEXT PRIMARY KEY,
    address TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""
