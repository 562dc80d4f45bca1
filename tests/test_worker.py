"""
Tests for worker wiring and the CLI.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from scholarworker import __main__ as cli
from scholarworker.config import WorkerConfig
from scholarworker.dispatcher import JobDispatcher
from scholarworker.types import HarvestResult, Record
from scholarworker.worker import run_worker


class TestRunWorker:
    """Test run_worker startup and shutdown."""

    @pytest.mark.asyncio
    async def test_consumes_inbound_queue_and_closes(self):
        """Verify the worker consumes the inbound queue and closes everything."""
        store = MagicMock(ensure_schema=AsyncMock(), close=AsyncMock())
        broker = MagicMock(connect=AsyncMock(), consume=AsyncMock(), close=AsyncMock())
        fetcher = MagicMock(aclose=AsyncMock())
        stop = asyncio.Event()
        stop.set()

        with patch("scholarworker.worker.PaperStore", return_value=store), patch(
            "scholarworker.worker.RabbitBroker", return_value=broker
        ), patch("scholarworker.worker.HttpPageFetcher", return_value=fetcher):
            await run_worker(WorkerConfig(), stop_event=stop)

        store.ensure_schema.assert_awaited_once()
        broker.connect.assert_awaited_once()
        queue, handler = broker.consume.await_args.args
        assert queue == "researcher-queue"
        assert isinstance(handler.__self__, JobDispatcher)
        broker.close.assert_awaited_once()
        fetcher.aclose.assert_awaited_once()
        store.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closes_on_startup_failure(self):
        """Verify resources are closed when startup fails."""
        store = MagicMock(
            ensure_schema=AsyncMock(side_effect=ConnectionError("no db")),
            close=AsyncMock(),
        )
        broker = MagicMock(close=AsyncMock())
        fetcher = MagicMock(aclose=AsyncMock())

        with patch("scholarworker.worker.PaperStore", return_value=store), patch(
            "scholarworker.worker.RabbitBroker", return_value=broker
        ), patch("scholarworker.worker.HttpPageFetcher", return_value=fetcher):
            with pytest.raises(ConnectionError):
                await run_worker(WorkerConfig(), stop_event=asyncio.Event())

        broker.close.assert_awaited_once()
        store.close.assert_awaited_once()


class TestCli:
    """Test the one-shot harvest command."""

    def test_harvest_writes_records(self, tmp_path, capsys):
        """Verify the harvest command writes records and prints the total."""
        result = HarvestResult(
            root_id="S1",
            records=(Record(link="https://scholar.test/1", title="Paper"),),
        )
        output = tmp_path / "papers.json"

        with patch.object(cli, "harvest_once", AsyncMock(return_value=result)) as harvest:
            cli.main(["harvest", "S1", "--single-page", "--output", str(output)])

        harvest.assert_awaited_once_with("S1", False, None)
        data = json.loads(output.read_text())
        assert data[0]["title"] == "Paper"
        assert "Total Publications Found: 1" in capsys.readouterr().err
