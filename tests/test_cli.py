"""Tests for the dtsli command line."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from dtsli.cli.get_sli import get_sli_command, parse_key_values, split_indicators
from dtsli.cli.main import build_parser, main
from dtsli.config.settings import Settings
from dtsli.context import EvaluationContext, SLIFilter
from dtsli.core.errors import ConfigurationError, ExitCode
from dtsli.emitters import HTTPEventEmitter, JSONFileEmitter, SLIBatch
from dtsli.slos.models import SLIResult


class TestParsing:
    """Tests for option parsing helpers."""

    def test_key_values(self):
        assert parse_key_values(["a=1", "b = x=y"], "--label") == {"a": "1", "b": "x=y"}
        assert parse_key_values(None, "--label") == {}

    @pytest.mark.parametrize("item", ["novalue", "=value"])
    def test_key_values_malformed(self, item):
        with pytest.raises(ConfigurationError, match="--filter expects key=value"):
            parse_key_values([item], "--filter")

    def test_split_indicators(self):
        assert split_indicators(["throughput,error_rate", " response_time_p95 ", ""]) == (
            "throughput",
            "error_rate",
            "response_time_p95",
        )
        assert split_indicators(None) == ()

    def test_parser(self):
        args = build_parser().parse_args(
            [
                "get-sli",
                "--project", "sockshop",
                "--stage", "staging",
                "--service", "carts",
                "--start", "1709290800",
                "--end", "1709291400",
                "--indicator", "throughput",
                "--indicator", "error_rate",
                "--no-dashboard",
            ]
        )
        assert args.command == "get-sli"
        assert args.indicators == ["throughput", "error_rate"]
        assert args.skip_dashboard is True
        assert args.output is None


def _batch(results):
    return SLIBatch(
        context=EvaluationContext(project="sockshop", stage="staging", service="carts"),
        start="s",
        end="e",
        results=results,
        labels={"DtCreds": "dynatrace"},
    )


@pytest.fixture
def retriever_cls():
    with patch("dtsli.cli.get_sli.SLIRetriever") as cls, patch(
        "dtsli.cli.get_sli.get_settings", return_value=Settings(_env_file=None)
    ):
        yield cls


def _run(retriever_cls, results, **kwargs):
    retriever_cls.return_value.retrieve = AsyncMock(return_value=_batch(results))
    arguments = dict(project="sockshop", stage="staging", service="carts", start="s", end="e")
    arguments.update(kwargs)
    return get_sli_command(**arguments)


class TestGetSLICommand:
    """Tests for the get-sli command."""

    def test_success(self, retriever_cls, tmp_path):
        code = _run(
            retriever_cls,
            [SLIResult.ok("throughput", 1.0)],
            indicators=["throughput"],
            labels=["buildId=42"],
            filters=["metric=rt_login"],
            resource_dir=str(tmp_path),
        )

        assert code == ExitCode.SUCCESS
        request = retriever_cls.return_value.retrieve.await_args.args[0]
        assert request.indicators == ("throughput",)
        assert request.context.labels == {"buildId": "42"}
        assert request.filters == (SLIFilter(key="metric", value="rt_login"),)

    def test_failed_indicator_is_warning(self, retriever_cls):
        code = _run(retriever_cls, [SLIResult.failed("throughput", "no data")])
        assert code == ExitCode.WARNING

    def test_skip_dashboard(self, retriever_cls):
        _run(retriever_cls, [SLIResult.ok("throughput", 1.0)], skip_dashboard=True)

        settings = retriever_cls.call_args.kwargs["settings"]
        assert settings.fetch_slo_sli_from_dashboard is False

    def test_emitter_selection(self, retriever_cls, tmp_path):
        _run(retriever_cls, [SLIResult.ok("a", 1.0)], output=str(tmp_path / "event.json"))
        assert isinstance(retriever_cls.call_args.args[1], JSONFileEmitter)

        _run(retriever_cls, [SLIResult.ok("a", 1.0)], event_endpoint="broker/events")
        assert isinstance(retriever_cls.call_args.args[1], HTTPEventEmitter)

    def test_malformed_label(self, retriever_cls):
        code = _run(retriever_cls, [], labels=["broken"])

        assert code == ExitCode.CONFIG_ERROR
        retriever_cls.return_value.retrieve.assert_not_called()


class TestMain:
    """Tests for the entry point."""

    def test_dispatches_get_sli(self):
        command = MagicMock(return_value=ExitCode.SUCCESS)
        with patch("dtsli.cli.main.configure_logging"), patch(
            "dtsli.cli.get_sli.get_sli_command", command
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(
                    [
                        "get-sli",
                        "--project", "sockshop",
                        "--stage", "staging",
                        "--service", "carts",
                        "--start", "s",
                        "--end", "e",
                        "--label", "a=b",
                    ]
                )

        assert exc_info.value.code == ExitCode.SUCCESS
        assert command.call_args.kwargs["labels"] == ["a=b"]

    def test_no_command_prints_help(self, capsys):
        with patch("dtsli.cli.main.configure_logging"):
            with pytest.raises(SystemExit) as exc_info:
                main([])

        assert exc_info.value.code == 1
        assert "get-sli" in capsys.readouterr().out
