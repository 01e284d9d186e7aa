"""Tests for configuration validation."""

import pytest

from smartroute.config import EngineConfig, SearchConfig
from smartroute.constants import ARBITRUM, ETHEREUM, POLYGON


class TestSearchConfig:
    def test_batch_size_bounds(self) -> None:
        with pytest.raises(ValueError, match="quote_batch_size"):
            SearchConfig(quote_batch_size=8)

    def test_quote_ttl_positive(self) -> None:
        with pytest.raises(ValueError, match="quote_ttl"):
            SearchConfig(quote_ttl=0)


class TestEngineConfig:
    def test_supported_chains(self) -> None:
        config = EngineConfig(chains=(ETHEREUM, POLYGON, ARBITRUM))
        assert config.chains == (1, 137, 42161)

    def test_unsupported_chain_names_the_supported_ones(self) -> None:
        with pytest.raises(ValueError, match=r"unsupported chain ids \[10\]") as exc_info:
            EngineConfig(chains=(ETHEREUM, 10))
        assert "ethereum (1)" in str(exc_info.value)
        assert "arbitrum (42161)" in str(exc_info.value)

    def test_chains_required(self) -> None:
        with pytest.raises(ValueError, match="at least one chain"):
            EngineConfig(chains=())
