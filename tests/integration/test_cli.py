"""维护 CLI 集成测试 -- python -m talentbind.core scan / repair"""

import pytest
from talentbind.core import __main__ as cli
from talentbind.core.models import AssignmentStatus


@pytest.fixture
def db_env(monkeypatch, tmp_db_path):
    monkeypatch.setenv("TALENTBIND_DB_PATH", str(tmp_db_path))
    return tmp_db_path


class TestCliArguments:
    def test_usage_without_command(self, capsys):
        assert cli.main([]) == 1
        assert "用法" in capsys.readouterr().out

    def test_unknown_command(self, capsys, db_env):
        assert cli.main(["rebuild"]) == 1
        assert "未知命令: rebuild" in capsys.readouterr().out


class TestCliCommands:
    async def test_scan_reports_violations(self, db_env, store_group, seo_request, capsys):
        """scan 列出违规并以非零退出码结束"""
        await store_group.conn.execute(
            "UPDATE role_requests SET status = 'ACCEPTED' WHERE request_id = ?",
            (seo_request.request_id,),
        )
        await store_group.conn.commit()

        assert await cli.scan() == 2
        out = capsys.readouterr().out
        assert seo_request.request_id in out
        assert "orphan_accepted" in out
        assert "发现 1 条违规" in out

    async def test_repair_fixes_violations(self, db_env, store_group, seo_request, capsys):
        await store_group.conn.execute(
            "UPDATE role_requests SET bound_actor_id = 'actor-a' WHERE request_id = ?",
            (seo_request.request_id,),
        )
        await store_group.conn.commit()

        assert await cli.repair() == 0
        assert "修复 1 条" in capsys.readouterr().out

        stored = await store_group.assignment_store.get_request(seo_request.request_id)
        assert stored.status == AssignmentStatus.SEARCHING
        assert stored.bound_actor_id is None

    async def test_scan_clean_database(self, db_env, store_group, capsys):
        assert await cli.scan() == 0
        assert "发现 0 条违规" in capsys.readouterr().out

    async def test_undecodable_row_reported(self, db_env, store_group, seo_request, capsys):
        """无法解码的行不会中断 repair，并以非零退出码报告"""
        await store_group.conn.execute(
            "UPDATE role_requests SET status = 'en cours' WHERE request_id = ?",
            (seo_request.request_id,),
        )
        await store_group.conn.commit()

        assert await cli.repair() == 2
        out = capsys.readouterr().out
        assert f"无法解码: {seo_request.request_id}" in out

        assert await cli.scan() == 2
        assert "1 条无法解码" in capsys.readouterr().out
