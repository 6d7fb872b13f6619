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

"""Tests for the SQLite relational store and table whitelist."""

import pytest

from groove_graph.errors import RelationalStoreError
from groove_graph.models import NodeKind
from groove_graph.storage.relational import RelationalStore
from groove_graph.storage.tables import projection
from support import ulid, user_attrs

EVENT_ID = ulid(900)


@pytest.mark.asyncio
async def test_initialize_creates_directory(tmp_path):
    store = RelationalStore(str(tmp_path / "nested" / "dir" / "groove.db"))
    await store.initialize()

    assert (tmp_path / "nested" / "dir" / "groove.db").exists()
    rows = await store.fetch("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
    assert {r["name"] for r in rows} >= {"users", "events", "posts", "comments"}


@pytest.mark.asyncio
async def test_insert_and_select_in_ids(relational):
    for n in (1, 2, 3):
        await relational.insert_row(NodeKind.USER, ulid(n), user_attrs(n))

    rows = await relational.select_in_ids(NodeKind.USER, [ulid(3), ulid(1), ulid(99)])

    assert sorted(r["id"] for r in rows) == [ulid(1), ulid(3)]
    assert set(rows[0]) == {"id", "name", "username", "email", "created_at", "updated_at"}


@pytest.mark.asyncio
async def test_select_in_ids_projection(relational):
    await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1))

    rows = await relational.select_in_ids(NodeKind.USER, [ulid(1)], ["username"])

    assert rows == [{"id": ulid(1), "username": "user1"}]


@pytest.mark.asyncio
async def test_select_in_ids_empty_skips_round_trip(relational):
    assert await relational.select_in_ids(NodeKind.USER, []) == []


@pytest.mark.asyncio
async def test_unknown_field_rejected(relational):
    with pytest.raises(ValueError, match="password"):
        await relational.select_in_ids(NodeKind.USER, [ulid(1)], ["password"])


@pytest.mark.asyncio
async def test_unknown_attribute_rejected_on_insert(relational):
    with pytest.raises(ValueError):
        await relational.insert_row(NodeKind.USER, ulid(1), {"name": "x", "is_admin": True})


@pytest.mark.asyncio
async def test_duplicate_insert_is_wrapped(relational):
    await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1))

    with pytest.raises(RelationalStoreError):
        await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1))


@pytest.mark.asyncio
async def test_transaction_commit(relational):
    async with relational.transaction() as tx:
        await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1), tx=tx)
        await tx.commit()

    assert await relational.exists(NodeKind.USER, ulid(1))


@pytest.mark.asyncio
async def test_transaction_without_commit_rolls_back(relational):
    async with relational.transaction() as tx:
        await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1), tx=tx)
        assert await tx.fetch("SELECT id FROM users") == [{"id": ulid(1)}]

    assert not await relational.exists(NodeKind.USER, ulid(1))


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(relational):
    with pytest.raises(RuntimeError):
        async with relational.transaction() as tx:
            await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1), tx=tx)
            raise RuntimeError("boom")

    assert not await relational.exists(NodeKind.USER, ulid(1))


@pytest.mark.asyncio
async def test_delete_cascades_to_posts_and_comments(relational):
    await relational.insert_row(NodeKind.USER, ulid(1), user_attrs(1))
    await relational.insert_row(NodeKind.EVENT, EVENT_ID, {"name": "Launch"})
    await relational.insert_row(NodeKind.POST, ulid(10), {"event_id": EVENT_ID, "content": "hi"})
    await relational.insert_row(NodeKind.COMMENT, ulid(20), {"post_id": ulid(10), "user_id": ulid(1)})

    removed = await relational.delete_row(NodeKind.EVENT, EVENT_ID)

    assert removed == 1
    assert not await relational.exists(NodeKind.POST, ulid(10))
    assert not await relational.exists(NodeKind.COMMENT, ulid(20))
    assert await relational.exists(NodeKind.USER, ulid(1))


@pytest.mark.asyncio
async def test_cascaded_rows_follow_reply_chains(relational):
    for n in (1, 2):
        await relational.insert_row(NodeKind.USER, ulid(n), user_attrs(n))
    await relational.insert_row(NodeKind.EVENT, EVENT_ID, {"name": "Launch"})
    await relational.insert_row(NodeKind.POST, ulid(10), {"event_id": EVENT_ID})
    await relational.insert_row(NodeKind.COMMENT, ulid(20), {"post_id": ulid(10), "user_id": ulid(1)})
    await relational.insert_row(
        NodeKind.COMMENT, ulid(21), {"post_id": ulid(10), "user_id": ulid(2), "parent_comment_id": ulid(20)}
    )
    await relational.insert_row(
        NodeKind.COMMENT, ulid(22), {"post_id": ulid(10), "user_id": ulid(2), "parent_comment_id": ulid(21)}
    )

    assert await relational.cascaded_rows(NodeKind.EVENT, EVENT_ID) == [
        (NodeKind.POST, ulid(10)),
        (NodeKind.COMMENT, ulid(20)),
        (NodeKind.COMMENT, ulid(21)),
        (NodeKind.COMMENT, ulid(22)),
    ]
    # A user's cascade reaches replies written by others
    assert await relational.cascaded_rows(NodeKind.USER, ulid(1)) == [
        (NodeKind.COMMENT, ulid(20)),
        (NodeKind.COMMENT, ulid(21)),
        (NodeKind.COMMENT, ulid(22)),
    ]
    assert await relational.cascaded_rows(NodeKind.COMMENT, ulid(21)) == [(NodeKind.COMMENT, ulid(22))]
    assert await relational.cascaded_rows(NodeKind.COMMENT, ulid(22)) == []


@pytest.mark.asyncio
async def test_find_kind(relational):
    await relational.insert_row(NodeKind.EVENT, EVENT_ID, {"name": "Launch"})

    assert await relational.find_kind(EVENT_ID) is NodeKind.EVENT
    assert await relational.find_kind(ulid(1)) is None


def test_projection_always_starts_with_id():
    assert projection(NodeKind.EVENT, ["name", "id", "name"]) == ["id", "name"]


def test_projection_defaults():
    assert projection(NodeKind.USER) == ["id", "name", "username", "email", "created_at", "updated_at"]
    assert projection(NodeKind.EVENT)[:4] == ["id", "name", "description", "type"]
