"""
Tests for validatornet/client.py

End-to-end through archiver bootstrap, peer selection, fetching and caching
against a scripted network.
"""

import random

import pytest
import trio

from validatornet import (
    INITIAL_PARAMETERS_KEY,
    STAKE_PARAMETERS_KEY,
    InitialParameters,
    MissingField,
    NetworkClient,
    NoPeerAvailable,
    NodeNotActive,
    RetriesExhausted,
    StakeParameters,
)
from validatornet.config import NETWORK_ACCOUNT, NetworkConfig
from validatornet.fetch import ResultCache

from fakes import ARCHIVER, PEER_1, PEER_2, peer_base


ARCHIVER_BASE = f"{ARCHIVER.ip}:{ARCHIVER.port}"
NETWORK_ACCOUNT_PATH = f"/account/{NETWORK_ACCOUNT}?type=5"
CYCLE_DURATION = 60

INITIAL_PARAMS_RESPONSE = {
    "account": {
        "data": {
            "current": {
                "nodeRewardAmountUsd": "64",
                "nodeRewardInterval": "a",
            }
        }
    }
}


class FixedClock:
    def __init__(self, now: float = 500.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def route_everywhere(network, path, *replies):
    """Give both candidate peers the same scripted route."""
    for peer in (PEER_1, PEER_2):
        network.route(peer_base(peer), path, *replies)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def bootstrapped(network):
    """Archiver P0 lists [P1, P2]; both answer cycle queries."""
    network.route(ARCHIVER_BASE, "/nodelist", {"nodeList": [PEER_1, PEER_2]})
    route_everywhere(network, "/sync-newest-cycle", {"newestCycle": {"duration": CYCLE_DURATION, "counter": 42}})
    return network


@pytest.fixture
def make_client(config, clock):
    def factory(network):
        return NetworkClient(
            config,
            http=network.client(),
            cache=ResultCache(clock=clock),
            rng=random.Random(11),
        )
    return factory


class TestInitialParameters:
    """Tests for fetch_initial_parameters."""

    @pytest.mark.timeout(30)
    def test_scenario(self, bootstrapped, make_client):
        """Hex parameters are decoded and cached for one cycle."""
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, INITIAL_PARAMS_RESPONSE)
        client = make_client(bootstrapped)

        async def run_test():
            first = await client.fetch_initial_parameters()
            requests_after_first = len(bootstrapped.requests)
            second = await client.fetch_initial_parameters()
            return first, second, requests_after_first

        first, second, requests_after_first = trio.run(run_test)

        assert first == InitialParameters(node_reward_amount=100, node_reward_interval=10)
        assert first.to_dict() == {"nodeRewardAmount": 100, "nodeRewardInterval": 10}
        assert second == first
        # Second call is served from the cache
        assert len(bootstrapped.requests) == requests_after_first
        assert bootstrapped.count("?type=5") == 1
        assert client.cache.get(INITIAL_PARAMETERS_KEY) == first
        assert client.cache.ttl_remaining(INITIAL_PARAMETERS_KEY) == pytest.approx(CYCLE_DURATION)

    @pytest.mark.timeout(30)
    def test_active_peer_comes_from_node_list(self, bootstrapped, make_client, config):
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, INITIAL_PARAMS_RESPONSE)
        client = make_client(bootstrapped)

        async def run_test():
            await client.fetch_initial_parameters()

        trio.run(run_test)
        assert client.session.active.id in ("peer-1", "peer-2")
        assert config.active_node_path.exists()

    @pytest.mark.timeout(30)
    def test_cache_expires_after_cycle(self, bootstrapped, make_client, clock):
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, INITIAL_PARAMS_RESPONSE)
        client = make_client(bootstrapped)

        async def run_test():
            await client.fetch_initial_parameters()
            clock.now += CYCLE_DURATION
            await client.fetch_initial_parameters()

        trio.run(run_test)
        assert bootstrapped.count("?type=5") == 2

    @pytest.mark.timeout(30)
    def test_missing_current_is_not_retried(self, bootstrapped, make_client):
        """An account without current parameters fails immediately."""
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, {"account": {"data": {}}})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField) as exc_info:
                await client.fetch_initial_parameters()
            return exc_info.value

        error = trio.run(run_test)
        assert error.field == "account.data.current"
        assert bootstrapped.count("?type=5") == 1
        assert client.cache.get(INITIAL_PARAMETERS_KEY) is None

    @pytest.mark.timeout(30)
    def test_account_never_appears(self, bootstrapped, make_client):
        """A response without an account is retried until the budget runs out."""
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, {"account": None})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(RetriesExhausted):
                await client.fetch_initial_parameters()

        trio.run(run_test)
        assert bootstrapped.count("?type=5") == 3

    @pytest.mark.timeout(30)
    def test_numeric_fields_kept(self, bootstrapped, make_client):
        """JSON numbers are already decoded; only strings are read as hex."""
        current = {"nodeRewardAmountUsd": 100, "nodeRewardInterval": 10}
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, {"account": {"data": {"current": current}}})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_initial_parameters()

        assert trio.run(run_test) == InitialParameters(node_reward_amount=100, node_reward_interval=10)

    @pytest.mark.timeout(30)
    @pytest.mark.parametrize("amount", ["zz", True, 1.5, ["64"]])
    def test_undecodable_field(self, bootstrapped, make_client, amount):
        current = {"nodeRewardAmountUsd": amount, "nodeRewardInterval": "a"}
        route_everywhere(bootstrapped, NETWORK_ACCOUNT_PATH, {"account": {"data": {"current": current}}})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField) as exc_info:
                await client.fetch_initial_parameters()
            return exc_info.value

        assert trio.run(run_test).field == "nodeRewardAmountUsd"


class TestStakeParameters:
    """Tests for fetch_stake_parameters."""

    @pytest.mark.timeout(30)
    def test_hex_to_decimal_and_cached(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/stake", {"stakeRequired": "3635c9adc5dea00000"})
        client = make_client(bootstrapped)

        async def run_test():
            first = await client.fetch_stake_parameters()
            second = await client.fetch_stake_parameters()
            return first, second

        first, second = trio.run(run_test)
        assert first == StakeParameters(stake_required="1000000000000000000000")
        assert second == first
        assert bootstrapped.count("/stake") == 1
        assert client.cache.get(STAKE_PARAMETERS_KEY) == "1000000000000000000000"

    @pytest.mark.timeout(30)
    def test_numeric_stake_kept(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/stake", {"stakeRequired": 100})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_stake_parameters()

        assert trio.run(run_test) == StakeParameters(stake_required="100")

    @pytest.mark.timeout(30)
    def test_missing_stake_required(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/stake", {"stakeMin": "10"})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField):
                await client.fetch_stake_parameters()

        trio.run(run_test)


class TestCycleDuration:
    """Tests for fetch_cycle_duration."""

    @pytest.mark.timeout(30)
    def test_duration(self, bootstrapped, make_client):
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_cycle_duration()

        assert trio.run(run_test) == CYCLE_DURATION

    @pytest.mark.timeout(30)
    def test_missing_duration(self, network, make_client):
        network.route(ARCHIVER_BASE, "/nodelist", {"nodeList": [PEER_1]})
        network.route(peer_base(PEER_1), "/sync-newest-cycle", {"newestCycle": {"counter": 1}})
        client = make_client(network)

        async def run_test():
            with pytest.raises(MissingField):
                await client.fetch_cycle_duration()

        trio.run(run_test)

    @pytest.mark.timeout(30)
    @pytest.mark.parametrize("duration", ["60", True, {"seconds": 60}])
    def test_non_numeric_duration(self, network, make_client, duration):
        """A duration that is not a number fails before anything is cached."""
        network.route(ARCHIVER_BASE, "/nodelist", {"nodeList": [PEER_1]})
        network.route(peer_base(PEER_1), "/sync-newest-cycle", {"newestCycle": {"duration": duration}})
        network.route(peer_base(PEER_1), NETWORK_ACCOUNT_PATH, INITIAL_PARAMS_RESPONSE)
        client = make_client(network)

        async def run_test():
            with pytest.raises(MissingField) as exc_info:
                await client.fetch_initial_parameters()
            return exc_info.value

        error = trio.run(run_test)
        assert error.field == "newestCycle.duration"
        assert client.cache.get(INITIAL_PARAMETERS_KEY) is None

    @pytest.mark.timeout(30)
    def test_fractional_duration(self, network, make_client):
        network.route(ARCHIVER_BASE, "/nodelist", {"nodeList": [PEER_1]})
        network.route(peer_base(PEER_1), "/sync-newest-cycle", {"newestCycle": {"duration": 30.5}})
        client = make_client(network)

        async def run_test():
            return await client.fetch_cycle_duration()

        assert trio.run(run_test) == 30.5


class TestAccountQueries:
    """Tests for node/EOA account lookups."""

    @pytest.mark.timeout(30)
    def test_node_parameters_returns_data(self, bootstrapped, make_client):
        node_data = {"stakeLock": "0a", "reward": "00", "nominator": "0xabc"}
        route_everywhere(bootstrapped, "/account/nodekey?type=9", {"account": {"data": node_data}})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_node_parameters("nodekey")

        assert trio.run(run_test) == node_data

    @pytest.mark.timeout(30)
    def test_node_parameters_falls_back_to_account(self, bootstrapped, make_client):
        account = {"stakeLock": "0a", "nominator": "0xabc"}
        route_everywhere(bootstrapped, "/account/nodekey?type=9", {"account": account})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_node_parameters("nodekey")

        assert trio.run(run_test) == account

    @pytest.mark.timeout(30)
    def test_eoa_details(self, bootstrapped, make_client):
        account = {"balance": "ff", "nonce": "1"}
        route_everywhere(bootstrapped, "/account/0xeoa", {"account": account})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_eoa_details("0xeoa")

        assert trio.run(run_test) == account


class TestNetworkInfo:
    """Tests for stats and version queries."""

    @pytest.mark.timeout(30)
    def test_validator_versions(self, bootstrapped, make_client):
        app_data = {"minVersion": "1.0.0", "activeVersion": "1.1.0"}
        route_everywhere(bootstrapped, "/nodeinfo", {"nodeInfo": {"appData": app_data}})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.fetch_validator_versions()

        assert trio.run(run_test) == app_data

    @pytest.mark.timeout(30)
    def test_validator_versions_missing_app_data(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/nodeinfo", {"nodeInfo": {}})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField):
                await client.fetch_validator_versions()

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_network_params_without_description(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.get_network_params()

        assert trio.run(run_test) == {"activeNodes": 120}
        assert bootstrapped.count("localhost") == 0

    @pytest.mark.timeout(30)
    def test_network_params_running_node(self, bootstrapped, make_client, config):
        """A running node adds its own load and tx-stats."""
        local = f"localhost:{config.ip.external_port}"
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        bootstrapped.route(local, "/load", {"networkLoad": 0.5, "nodeLoad": {"internal": 0.1}})
        bootstrapped.route(local, "/tx-stats", {"totalTxs": 10})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.get_network_params({"pm2_env": {"status": "online"}})

        assert trio.run(run_test) == {
            "activeNodes": 120,
            "networkLoad": 0.5,
            "nodeLoad": {"internal": 0.1},
            "totalTxs": 10,
        }

    @pytest.mark.timeout(30)
    def test_network_params_stopped_node(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        client = make_client(bootstrapped)

        async def run_test():
            return await client.get_network_params({"pm2_env": {"status": "stopped"}})

        assert trio.run(run_test) == {"activeNodes": 120}
        assert bootstrapped.count("localhost") == 0

    @pytest.mark.timeout(30)
    def test_network_params_local_node_down(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(NodeNotActive):
                await client.get_network_params({"status": "online"})

        trio.run(run_test)

    @pytest.mark.timeout(30)
    @pytest.mark.parametrize("stats", [[120, 4], "120 active", 120])
    def test_network_stats_not_an_object(self, bootstrapped, make_client, stats):
        route_everywhere(bootstrapped, "/network-stats", stats)
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField) as exc_info:
                await client.get_network_params()
            return exc_info.value

        assert trio.run(run_test).field == "network-stats"
        assert bootstrapped.count("/network-stats") == 1

    @pytest.mark.timeout(30)
    def test_local_load_not_an_object(self, bootstrapped, make_client, config):
        local = f"localhost:{config.ip.external_port}"
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        bootstrapped.route(local, "/load", [0.5, 0.1])
        bootstrapped.route(local, "/tx-stats", {"totalTxs": 10})
        client = make_client(bootstrapped)

        async def run_test():
            with pytest.raises(MissingField) as exc_info:
                await client.get_network_params({"pm2_env": {"status": "online"}})
            return exc_info.value

        assert trio.run(run_test).field == "load"

    @pytest.mark.timeout(30)
    def test_node_info(self, network, make_client, config):
        local = f"localhost:{config.ip.external_port}"
        network.route(local, "/nodeinfo?reportIntermediateStatus=true", {"nodeInfo": {"status": "syncing"}})
        client = make_client(network)

        async def run_test():
            return await client.fetch_node_info()

        assert trio.run(run_test) == {"status": "syncing"}


class TestNetworkClient:
    """Lifecycle and isolation."""

    def test_independent_clients(self, network, tmp_path):
        """Two clients never share session or cache state."""
        a = NetworkClient(NetworkConfig(base_dir=str(tmp_path / "a"), archivers=[ARCHIVER]), http=network.client())
        b = NetworkClient(NetworkConfig(base_dir=str(tmp_path / "b"), archivers=[ARCHIVER]), http=network.client())
        a.cache.set(STAKE_PARAMETERS_KEY, "1", ttl_ms=60000)

        assert b.cache.get(STAKE_PARAMETERS_KEY) is None
        assert a.session is not b.session

    @pytest.mark.timeout(30)
    def test_all_archivers_down(self, network, make_client):
        client = make_client(network)

        async def run_test():
            with pytest.raises(NoPeerAvailable):
                await client.fetch_network_stats()

        trio.run(run_test)

    @pytest.mark.timeout(30)
    def test_context_manager_closes_owned_http(self, config):
        async def run_test():
            async with NetworkClient(config) as client:
                http = client.http
            return http

        http = trio.run(run_test)
        assert http.is_closed

    @pytest.mark.timeout(30)
    def test_injected_http_left_open(self, network, config):
        http = network.client()

        async def run_test():
            async with NetworkClient(config, http=http):
                pass

        trio.run(run_test)
        assert not http.is_closed

    @pytest.mark.timeout(30)
    def test_stats(self, bootstrapped, make_client):
        route_everywhere(bootstrapped, "/network-stats", {"activeNodes": 120})
        client = make_client(bootstrapped)

        async def run_test():
            await client.fetch_network_stats()

        trio.run(run_test)
        stats = client.get_stats()
        assert stats["fetcher"]["succeeded"] == 1
        assert stats["selector"]["selections"] == 2
        assert stats["session"]["active_peer"]["id"] in ("peer-1", "peer-2")
