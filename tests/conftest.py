"""全局 pytest 配置 -- 临时 SQLite 数据库 + 目录 / 执行者夹具

目录：
- seo-writer: 人类岗位，允许全部资历
- ux-designer: 人类岗位，仅允许 senior
- ai-translator: AI 岗位

执行者（seo-writer）：
- actor-a: senior, {en, fr}, {seo, ads}
- actor-b: intermediate, {en}, {seo}
- actor-c: senior, {en}, {seo}
- actor-d: senior, {en, de}, {seo}
- actor-paused: senior, {en}, {seo}，暂停接单
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import aiosqlite
import pytest_asyncio
from talentbind.core.models import (
    Actor,
    ActorKind,
    ActorStatus,
    RoleProfile,
    Seniority,
)
from talentbind.core.store import StoreGroup, create_store_group
from talentbind.core.store.sqlite_init import init_db
from talentbind.engine import BookingCoordinator, ConsistencyAuditor


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "sqlite" / "talentbind.db"


@pytest_asyncio.fixture
async def db_conn(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    conn = await aiosqlite.connect(str(tmp_path / "test.db"))
    await init_db(conn)
    yield conn
    await conn.close()


async def seed_directory(store_group: StoreGroup) -> None:
    """写入测试用岗位目录与执行者"""
    catalog = store_group.catalog
    await catalog.register_profile(RoleProfile(profile_id="seo-writer", name="SEO 写手"))
    await catalog.register_profile(
        RoleProfile(
            profile_id="ux-designer",
            name="UX 设计",
            seniority_options=frozenset({Seniority.SENIOR}),
        )
    )
    await catalog.register_profile(
        RoleProfile(profile_id="ai-translator", name="AI 翻译", is_ai=True)
    )

    directory = store_group.actor_directory
    for actor in [
        Actor(
            actor_id="actor-a",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
            languages={"EN", "FR"},
            expertise={"SEO", "Ads"},
        ),
        Actor(
            actor_id="actor-b",
            profile_id="seo-writer",
            seniority=Seniority.INTERMEDIATE,
            languages={"EN"},
            expertise={"SEO"},
        ),
        Actor(
            actor_id="actor-c",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
            languages={"EN"},
            expertise={"SEO"},
        ),
        Actor(
            actor_id="actor-d",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
            languages={"EN", "DE"},
            expertise={"SEO"},
        ),
        Actor(
            actor_id="actor-paused",
            profile_id="seo-writer",
            seniority=Seniority.SENIOR,
            languages={"EN"},
            expertise={"SEO"},
            status=ActorStatus.PAUSED,
        ),
        Actor(
            actor_id="ai-translator",
            kind=ActorKind.AI,
            profile_id="ai-translator",
            seniority=Seniority.SENIOR,
        ),
    ]:
        await directory.register_actor(actor)
    await store_group.conn.commit()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已写入目录与执行者的 StoreGroup"""
    sg = await create_store_group(str(tmp_db_path))
    await seed_directory(sg)
    yield sg
    await sg.close()


@pytest_asyncio.fixture
async def coordinator(store_group: StoreGroup) -> BookingCoordinator:
    return BookingCoordinator(store_group)


@pytest_asyncio.fixture
async def auditor(
    store_group: StoreGroup, coordinator: BookingCoordinator
) -> ConsistencyAuditor:
    return ConsistencyAuditor(store_group, coordinator)


@pytest_asyncio.fixture
async def seo_request(coordinator: BookingCoordinator):
    """senior / {en} / {seo} 的开放请求（示例场景中的 R）"""
    outcome = await coordinator.open_request(
        project_id="proj-1",
        profile_id="seo-writer",
        seniority=Seniority.SENIOR,
        required_languages=["EN"],
        required_expertise=["SEO"],
    )
    return outcome.request
