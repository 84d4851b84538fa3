"""Tests for the operator CLI."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from enrollq import cli
from enrollq.jobs.types import JobType


class TestBuildParser:
    def test_enqueue_arguments(self):
        args = cli.build_parser().parse_args(
            ["enqueue", "process_waitlist", "--payload", '{"class_id": "c1"}', "--priority", "2"]
        )

        assert args.command == "enqueue"
        assert args.type == "process_waitlist"
        assert args.priority == 2
        assert args.delay == 0
        assert args.max_attempts is None

    def test_purge_arguments(self):
        args = cli.build_parser().parse_args(["purge", "--failed-days", "90"])

        assert args.failed_days == 90
        assert args.completed_days is None

    def test_every_command_is_wired(self):
        parser = cli.build_parser()
        for command in cli.COMMANDS:
            argv = [command, "process_waitlist"] if command == "enqueue" else [command]
            assert parser.parse_args(argv).command == command

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestEnqueueCommand:
    @pytest.mark.asyncio
    async def test_unknown_type(self):
        args = cli.build_parser().parse_args(["enqueue", "generate_reports"])
        assert await cli.cmd_enqueue(args) == 1

    @pytest.mark.asyncio
    async def test_payload_must_be_object(self):
        args = cli.build_parser().parse_args(
            ["enqueue", "process_waitlist", "--payload", "[1, 2]"]
        )
        assert await cli.cmd_enqueue(args) == 1

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        args = cli.build_parser().parse_args(
            ["enqueue", "process_waitlist", "--payload", "{nope"]
        )
        assert await cli.cmd_enqueue(args) == 1

    @pytest.mark.asyncio
    async def test_enqueue(self, capsys):
        pool = MagicMock()
        pool.close = AsyncMock()
        job_id = uuid4()
        args = cli.build_parser().parse_args(
            ["enqueue", "process_waitlist", "--payload", '{"class_id": "c1"}', "--max-attempts", "5"]
        )

        with patch.object(cli, "_open_pool", AsyncMock(return_value=pool)), patch(
            "enrollq.repositories.jobs.JobRepository"
        ) as repo_cls:
            repo_cls.return_value.enqueue = AsyncMock(return_value=job_id)
            code = await cli.cmd_enqueue(args)

        assert code == 0
        assert str(job_id) in capsys.readouterr().out
        call = repo_cls.return_value.enqueue.call_args
        assert call.args == (JobType.PROCESS_WAITLIST, {"class_id": "c1"})
        assert call.kwargs["max_attempts"] == 5
        assert call.kwargs["scheduled_at"] is None
        pool.close.assert_awaited_once()
