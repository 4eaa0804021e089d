"""Database schema DDL. All tables use CREATE IF NOT EXISTS for idempotency."""

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    sequence_num INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT UNIQUE NOT NULL,
    tree_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    device_id TEXT NOT NULL DEFAULT 'local',
    event_type TEXT NOT NULL,
    payload TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_tree_id ON events(tree_id);
CREATE INDEX IF NOT EXISTS idx_events_event_type ON events(event_type);

CREATE TABLE IF NOT EXISTS dialogue_trees (
    tree_id TEXT PRIMARY KEY,
    character_id TEXT NOT NULL,
    current_node_id TEXT NOT NULL DEFAULT 'root',
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    archived INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_dialogue_trees_character_id ON dialogue_trees(character_id);

CREATE TABLE IF NOT EXISTS dialogue_nodes (
    tree_id TEXT NOT NULL,
    node_id TEXT NOT NULL,
    parent_node_id TEXT,
    user_input TEXT NOT NULL DEFAULT '',
    assistant_response TEXT NOT NULL DEFAULT '',
    full_response TEXT NOT NULL DEFAULT '',
    parsed_content TEXT,
    created_at TEXT NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (tree_id, node_id),
    FOREIGN KEY (tree_id) REFERENCES dialogue_trees(tree_id)
);

CREATE INDEX IF NOT EXISTS idx_dialogue_nodes_parent ON dialogue_nodes(tree_id, parent_node_id);
"""
