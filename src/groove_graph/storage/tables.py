# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Relational tables holding the display attributes of graph nodes.

Each node kind maps to one table keyed by the external id.  Column names
are a closed whitelist: projections requested by callers are checked
against it before any SQL is assembled.
"""

from dataclasses import dataclass

from ..models.node import NodeKind


@dataclass(frozen=True)
class Table:
    """Table definition: DDL, column whitelist and default projection."""

    name: str
    columns: tuple[str, ...]
    default_fields: tuple[str, ...]
    ddl: str


USERS = Table(
    name="users",
    columns=(
        "id",
        "name",
        "username",
        "email",
        "description",
        "birth_date",
        "profile_image_url",
        "private",
        "created_at",
        "updated_at",
    ),
    default_fields=("id", "name", "username", "email", "created_at", "updated_at"),
    ddl="""
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            username TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL UNIQUE,
            description TEXT,
            birth_date TEXT,
            profile_image_url TEXT,
            private INTEGER DEFAULT 0,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT
        )
    """,
)

EVENTS = Table(
    name="events",
    columns=(
        "id",
        "name",
        "description",
        "type",
        "public",
        "virtual",
        "address",
        "start_time",
        "end_time",
        "ticket_cost",
        "min_age",
        "slots",
        "created_at",
        "updated_at",
    ),
    default_fields=(
        "id",
        "name",
        "description",
        "type",
        "public",
        "start_time",
        "end_time",
        "ticket_cost",
        "min_age",
        "slots",
    ),
    ddl="""
        CREATE TABLE IF NOT EXISTS events (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            type INTEGER DEFAULT 1 CHECK (type > 0),
            public INTEGER DEFAULT 1,
            virtual INTEGER DEFAULT 0,
            address TEXT,
            start_time TEXT,
            end_time TEXT,
            ticket_cost REAL DEFAULT 0,
            min_age INTEGER DEFAULT 0 CHECK (min_age >= 0),
            slots INTEGER DEFAULT -1 CHECK (slots >= -1),
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT
        )
    """,
)

POSTS = Table(
    name="posts",
    columns=("id", "event_id", "content", "comments_count", "created_at", "updated_at"),
    default_fields=("id", "event_id", "content", "comments_count", "created_at"),
    ddl="""
        CREATE TABLE IF NOT EXISTS posts (
            id TEXT PRIMARY KEY,
            event_id TEXT NOT NULL,
            content TEXT,
            comments_count INTEGER DEFAULT 0,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT,
            FOREIGN KEY (event_id) REFERENCES events (id) ON DELETE CASCADE
        )
    """,
)

COMMENTS = Table(
    name="comments",
    columns=("id", "post_id", "parent_comment_id", "user_id", "content", "replies_count", "created_at"),
    default_fields=("id", "post_id", "parent_comment_id", "user_id", "content", "replies_count", "created_at"),
    ddl="""
        CREATE TABLE IF NOT EXISTS comments (
            id TEXT PRIMARY KEY,
            post_id TEXT NOT NULL,
            parent_comment_id TEXT,
            user_id TEXT NOT NULL,
            content TEXT,
            replies_count INTEGER DEFAULT 0,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (post_id) REFERENCES posts (id) ON DELETE CASCADE,
            FOREIGN KEY (parent_comment_id) REFERENCES comments (id) ON DELETE CASCADE,
            FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
        )
    """,
)

# Creation order respects foreign keys
TABLES: dict[NodeKind, Table] = {
    NodeKind.USER: USERS,
    NodeKind.EVENT: EVENTS,
    NodeKind.POST: POSTS,
    NodeKind.COMMENT: COMMENTS,
}

INDICES = (
    "CREATE INDEX IF NOT EXISTS idx_posts_event_id ON posts(event_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_post_id ON comments(post_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_user_id ON comments(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_comments_parent ON comments(parent_comment_id)",
)

# Comments reached from a seed set, replies included
_COMMENT_TREE = """
    WITH RECURSIVE doomed(id) AS (
        SELECT id FROM comments WHERE {seed}
        UNION
        SELECT c.id FROM comments c JOIN doomed d ON c.parent_comment_id = d.id
    )
    SELECT id FROM doomed ORDER BY id
"""

# Rows removed by ON DELETE CASCADE when a row of the key kind is deleted.
# Each query takes the deleted row's id as its only parameter.
CASCADES: dict[NodeKind, tuple[tuple[NodeKind, str], ...]] = {
    NodeKind.USER: ((NodeKind.COMMENT, _COMMENT_TREE.format(seed="user_id = ?")),),
    NodeKind.EVENT: (
        (NodeKind.POST, "SELECT id FROM posts WHERE event_id = ? ORDER BY id"),
        (
            NodeKind.COMMENT,
            _COMMENT_TREE.format(seed="post_id IN (SELECT id FROM posts WHERE event_id = ?)"),
        ),
    ),
    NodeKind.POST: ((NodeKind.COMMENT, _COMMENT_TREE.format(seed="post_id = ?")),),
    NodeKind.COMMENT: ((NodeKind.COMMENT, _COMMENT_TREE.format(seed="parent_comment_id = ?")),),
}


def projection(kind: NodeKind, fields: list[str] | tuple[str, ...] | None = None) -> list[str]:
    """
    Columns to select for ``kind``.

    ``id`` always comes first; unknown columns raise ``ValueError``.
    Duplicates are dropped, the requested order is otherwise kept.
    """
    table = TABLES[kind]
    if not fields:
        return list(table.default_fields)

    unknown = [f for f in fields if f not in table.columns]
    if unknown:
        raise ValueError(f"Unknown {table.name} field(s): {', '.join(unknown)}")

    columns = ["id"]
    for f in fields:
        if f not in columns:
            columns.append(f)
    return columns
