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
Storage factory for the relationship engine.

Creates and initializes the relational store.
"""

import logging

from ..config import Settings
from .relational import RelationalStore

logger = logging.getLogger(__name__)


async def create_relational_store(settings: Settings) -> RelationalStore:
    """
    Create and initialize the SQLite relational store.

    Returns:
        Initialized RelationalStore instance
    """
    config = settings.relational
    logger.info("Creating relational store instance...")

    store = RelationalStore(db_path=config.path, busy_timeout=config.busy_timeout)
    await store.initialize()
    return store
