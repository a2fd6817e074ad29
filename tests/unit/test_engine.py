"""
Tests for request dispatch and the end-to-end race test run.
"""

import pytest
from aiohttp.test_utils import TestServer

from raceprobe.config import InvalidCookieFormat, NoTargetsConfigured, RaceConfig, TargetSpec
from raceprobe.dispatcher import RequestDispatcher
from raceprobe.engine import RaceTester, run_race_test
from raceprobe.preparer import prepare_attack


class TestRequestDispatcher:
    """Tests for RequestDispatcher.dispatch."""

    @pytest.mark.asyncio
    async def test_every_execution_accounted_for(self, target_app, target_state, make_config) -> None:
        async with TestServer(target_app) as server:
            config = make_config(str(server.make_url("/ok")), count=5)

            result = await RequestDispatcher().dispatch(prepare_attack(config))

        assert len(result.records) == 5
        assert result.errors == []
        assert result.total == 5
        assert target_state["hits"]["ok"] == 5
        assert sorted(r.index for r in result.records) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_without_start_gate(self, target_app, make_config) -> None:
        async with TestServer(target_app) as server:
            config = make_config(str(server.make_url("/ok")), count=3)
            config.sync_start = False

            result = await RequestDispatcher().dispatch(prepare_attack(config))

        assert len(result.records) == 3

    @pytest.mark.asyncio
    async def test_mixed_failures(self, target_app, make_config, unused_port) -> None:
        async with TestServer(target_app) as server:
            config = make_config(
                str(server.make_url("/ok")),
                f"http://127.0.0.1:{unused_port}/",
                count=2,
            )
            config.timeout = 5

            result = await RequestDispatcher().dispatch(prepare_attack(config))

        assert len(result.records) == 2
        assert len(result.errors) == 2
        assert all(e.url.endswith(f":{unused_port}/") for e in result.errors)


class TestRunRaceTest:
    """End-to-end race test runs against a local server."""

    @pytest.mark.asyncio
    async def test_idempotent_endpoint(self, target_app, make_config) -> None:
        async with TestServer(target_app) as server:
            result = await run_race_test(make_config(str(server.make_url("/coupon")), count=3))

        assert result.errors == []
        assert len(result.groups) == 1
        assert result.groups[0].count == 3
        assert result.groups[0].exemplar.body == b"OK-1"

    @pytest.mark.asyncio
    async def test_diverging_endpoint(self, target_app, make_config) -> None:
        async with TestServer(target_app) as server:
            result = await run_race_test(
                make_config(str(server.make_url("/balance")), method="POST", count=3)
            )

        assert len(result.groups) == 3
        assert all(g.count == 1 for g in result.groups)
        assert sorted(g.exemplar.body for g in result.groups) == sorted(
            [b"Balance:100", b"Balance:99", b"Balance:98"]
        )

    @pytest.mark.asyncio
    async def test_two_targets_same_outcome(self, target_app) -> None:
        async with TestServer(target_app) as server:
            config = RaceConfig(
                targets=[
                    TargetSpec("GET", str(server.make_url("/ok"))),
                    TargetSpec("GET", str(server.make_url("/ok2"))),
                ],
                count=2,
            )

            result = await run_race_test(config)

        assert len(result.groups) == 1
        assert result.groups[0].count == 4
        assert len(result.groups[0].targets) == 2
        assert set(result.groups[0].targets) == set(config.targets)

    @pytest.mark.asyncio
    async def test_redirect_is_not_an_error(self, target_app, target_state, make_config) -> None:
        async with TestServer(target_app) as server:
            result = await run_race_test(make_config(str(server.make_url("/redirect")), count=2))

        assert result.errors == []
        assert len(result.groups) == 1
        assert result.groups[0].exemplar.status_code == 302
        assert result.groups[0].exemplar.location.endswith("/landing")
        assert "landing" not in target_state["hits"]

    @pytest.mark.asyncio
    async def test_proxy_without_scheme(self, proxy_app, proxy_state, make_config) -> None:
        async with TestServer(proxy_app) as proxy_server:
            config = make_config("http://shop.example.test/redeem", method="POST", count=3)
            config.proxy = f"127.0.0.1:{proxy_server.port}"
            expected_proxy = f"http://127.0.0.1:{proxy_server.port}"

            result = await run_race_test(config)

        assert result.proxy == expected_proxy
        assert result.errors == []
        assert result.groups[0].count == 3
        assert proxy_state["requests"] == [("POST", "shop.example.test", "/redeem")] * 3

    @pytest.mark.asyncio
    async def test_unreachable_target(self, make_config, unused_port) -> None:
        config = make_config(f"http://127.0.0.1:{unused_port}/", count=3)
        config.timeout = 5

        result = await run_race_test(config)

        assert result.groups == []
        assert len(result.errors) == 3
        assert result.total_requests == 3
        assert result.responses_received == 0

    @pytest.mark.asyncio
    async def test_malformed_cookie_sends_nothing(self, target_app, target_state) -> None:
        async with TestServer(target_app) as server:
            config = RaceConfig(
                targets=[
                    TargetSpec("GET", str(server.make_url("/ok"))),
                    TargetSpec("GET", str(server.make_url("/ok2")), cookies=("nameonly",)),
                ],
                count=3,
            )

            with pytest.raises(InvalidCookieFormat):
                await run_race_test(config)

        assert target_state["hits"] == {}

    @pytest.mark.asyncio
    async def test_no_targets(self) -> None:
        with pytest.raises(NoTargetsConfigured):
            await run_race_test(RaceConfig())

    @pytest.mark.asyncio
    async def test_result_report(self, target_app, make_config) -> None:
        async with TestServer(target_app) as server:
            url = str(server.make_url("/page"))
            result = await run_race_test(make_config(url, count=2))

        report = result.report()

        assert len(report) == 1
        assert report[0]["count"] == 2
        assert report[0]["similar"] == 1
        assert report[0]["response"]["body"] == "<h1>Welcome</h1>"
        assert report[0]["requests"][0]["url"] == url
        assert result.to_dict()["distinct_outcomes"] == 1


class TestRaceTester:
    """Tests for RaceTester."""

    @pytest.mark.asyncio
    async def test_run_and_save(self, target_app, make_config, tmp_path) -> None:
        async with TestServer(target_app) as server:
            tester = RaceTester(make_config(str(server.make_url("/coupon")), count=2), output_dir=str(tmp_path))
            result = await tester.test()

        paths = tester.save_results(result, "coupon")

        assert paths["json"].endswith("coupon.json")
        assert "## Status: SINGLE OUTCOME" in (tmp_path / "coupon.md").read_text()
