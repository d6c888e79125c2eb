"""Tests for RiskManager class."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from futures_core.risk.models import AlertSeverity, AlertType, PositionRisk
from futures_core.risk.risk_manager import RiskManager
from futures_core.risk.settings import RiskSettings
from futures_core.sizing.models import OrderSide


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_position(symbol, size_usd, side=OrderSide.BUY):
    return PositionRisk(
        symbol=symbol,
        side=side,
        quantity=1.0,
        average_price=size_usd,
        current_price=size_usd,
        unrealized_pnl=0.0,
        unrealized_pnl_percent=0.0,
        position_size_usd=size_usd,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def manager(clock):
    return RiskManager(clock=clock)


def alert_types(alerts):
    return {a.type for a in alerts}


class TestRiskManagerInit:
    """Tests for RiskManager initialization."""

    def test_init_with_defaults(self, manager):
        limits = manager.get_risk_limits()

        assert limits.max_position_size_usd == 1000.0
        assert limits.max_daily_loss_percent == 0.05
        assert limits.max_open_positions == 5
        assert manager.settings.portfolio_value_usd == 10_000.0
        assert manager.open_position_count == 0
        assert manager.get_alerts() == []
        assert manager.is_monitoring is False

    def test_init_metrics_zeroed(self, manager, clock):
        metrics = manager.get_risk_metrics()

        assert metrics.daily_pnl == 0.0
        assert metrics.portfolio_beta == 1.0
        assert metrics.last_updated == clock.now


class TestShouldAllowTrade:
    """Tests for the final trade gate."""

    def test_allows_trade_within_limits(self, manager):
        assert manager.should_allow_trade("BTCUSDT", 0.01, 65000.0, OrderSide.BUY) is True

    def test_denies_oversized_position(self, manager):
        # 0.02 * 65000 = 1300 > 1000
        assert manager.should_allow_trade("BTCUSDT", 0.02, 65000.0, OrderSide.BUY) is False

    def test_denies_new_symbol_at_position_limit(self, manager):
        manager.update_limits(max_open_positions=2)
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 300))
        manager.update_position("ETHUSDT", make_position("ETHUSDT", 300))

        assert manager.should_allow_trade("ADAUSDT", 10, 0.4, OrderSide.BUY) is False
        assert manager.should_allow_trade("ETHUSDT", 0.01, 3200.0, OrderSide.BUY) is True

    def test_denies_after_daily_loss_limit(self, manager):
        manager.record_pnl(-600.0)

        assert manager.should_allow_trade("BTCUSDT", 0.001, 65000.0, OrderSide.BUY) is False

    def test_daily_profit_does_not_block(self, manager):
        manager.record_pnl(800.0)

        assert manager.should_allow_trade("BTCUSDT", 0.001, 65000.0, OrderSide.BUY) is True

    def test_denies_after_drawdown_limit(self, manager, clock):
        manager.record_pnl(2000.0, timestamp=clock.now - timedelta(days=3))
        manager.record_pnl(-1100.0, timestamp=clock.now - timedelta(days=2))

        assert manager.get_risk_metrics().daily_pnl == 0.0
        assert manager.should_allow_trade("BTCUSDT", 0.001, 65000.0, OrderSide.BUY) is False


class TestRiskLimitChecks:
    """Tests for alert generation."""

    def test_daily_loss_critical(self, manager):
        manager.record_pnl(-600.0)

        alert = next(a for a in manager.get_alerts() if a.type == AlertType.DAILY_LOSS)
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_value == pytest.approx(0.06)
        assert alert.limit_value == 0.05

    def test_daily_loss_warning(self, manager):
        manager.record_pnl(-400.0)

        alert = next(a for a in manager.get_alerts() if a.type == AlertType.DAILY_LOSS)
        assert alert.severity == AlertSeverity.HIGH

    def test_small_loss_no_alert(self, manager):
        manager.record_pnl(-100.0)

        assert manager.get_alerts() == []

    def test_drawdown_critical(self, manager, clock):
        manager.record_pnl(2000.0, timestamp=clock.now - timedelta(days=3))
        manager.record_pnl(-1100.0, timestamp=clock.now - timedelta(days=2))

        alert = next(a for a in manager.get_alerts() if a.type == AlertType.DRAWDOWN)
        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.current_value == pytest.approx(0.11)

    def test_position_size_alerts(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 1200))
        manager.update_position("ETHUSDT", make_position("ETHUSDT", 900))

        sized = {a.symbol: a.severity for a in manager.get_alerts() if a.type == AlertType.POSITION_SIZE}
        assert sized["BTCUSDT"] == AlertSeverity.CRITICAL
        assert sized["ETHUSDT"] == AlertSeverity.MEDIUM

    def test_single_position_is_concentrated(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))

        assert AlertType.CONCENTRATION in alert_types(manager.get_alerts())
        assert manager.get_risk_metrics().concentration_risk == pytest.approx(1.0)

    def test_diversified_positions_not_concentrated(self, manager):
        for symbol in ("A", "B", "C", "D", "E"):
            manager.update_position(symbol, make_position(symbol, 100))

        raised = manager.run_risk_check()

        assert AlertType.CONCENTRATION not in alert_types(raised)

    def test_correlation_alert(self, manager):
        for btc, eth in [(100, 10), (102, 10.2), (101, 10.1), (105, 10.5), (104, 10.4)]:
            manager.record_price("BTCUSDT", btc)
            manager.record_price("ETHUSDT", eth)
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 300))
        manager.update_position("ETHUSDT", make_position("ETHUSDT", 300))

        alert = next(a for a in manager.get_alerts() if a.type == AlertType.CORRELATION)
        assert alert.severity == AlertSeverity.HIGH
        assert manager.get_risk_metrics().correlation_risk > 0.7

    def test_var_breach_alert(self, manager, clock):
        for i in range(31):
            pnl = -1200.0 if i % 2 else 1200.0
            manager.record_pnl(pnl, timestamp=clock.now - timedelta(days=40 - i))

        metrics = manager.get_risk_metrics()
        assert metrics.var_95 == pytest.approx(-2400.0)
        assert AlertType.VAR_BREACH in alert_types(manager.get_alerts())

    def test_alerts_newest_first(self, manager, clock):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        first_at = clock.now
        clock.advance(seconds=1)
        manager.record_pnl(-600.0)

        alerts = manager.get_alerts()
        assert alerts[0].timestamp == clock.now
        assert alerts[-1].timestamp == first_at
        assert manager.get_alerts(limit=1) == alerts[:1]

    def test_repeated_breach_repeats_alert_by_default(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        manager.run_risk_check()

        concentration = [a for a in manager.get_alerts() if a.type == AlertType.CONCENTRATION]
        assert len(concentration) == 2

    def test_cooldown_suppresses_repeats(self, clock):
        manager = RiskManager(RiskSettings(alert_cooldown_seconds=60), clock=clock)
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        manager.run_risk_check()

        assert len(manager.get_alerts()) == 1

        clock.advance(seconds=61)
        manager.run_risk_check()

        assert len(manager.get_alerts()) == 2

    def test_alert_history_capped(self, clock):
        manager = RiskManager(RiskSettings(max_alerts=5), clock=clock)
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        for _ in range(10):
            manager.run_risk_check()

        assert len(manager.get_alerts()) == 5


class TestAlertHandling:
    """Tests for acknowledgment and alert callbacks."""

    def test_acknowledge_alert(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        alert = manager.get_alerts()[0]

        assert manager.acknowledge_alert(alert.id) is True
        assert manager.get_unacknowledged_alerts() == []
        assert manager.acknowledge_alert("missing") is False

    def test_callback_receives_alerts(self, manager):
        received = []
        manager.add_alert_callback(received.append)

        manager.record_pnl(-600.0)

        assert any(a.type == AlertType.DAILY_LOSS for a in received)

    def test_failing_callback_does_not_propagate(self, manager):
        manager.add_alert_callback(MagicMock(side_effect=RuntimeError("sink down")))

        manager.record_pnl(-600.0)

        assert manager.get_alerts()


class TestStateUpdates:
    """Tests for positions, P&L history and limits."""

    def test_update_and_remove_position(self, manager):
        manager.update_position("BTCUSDT", make_position("OTHER", 500))

        assert manager.get_position("BTCUSDT").symbol == "BTCUSDT"
        assert manager.open_position_count == 1

        manager.remove_position("BTCUSDT")

        assert manager.get_position("BTCUSDT") is None
        assert manager.get_positions() == {}

    def test_get_positions_returns_copy(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))

        manager.get_positions().clear()

        assert manager.open_position_count == 1

    def test_pnl_retention(self, manager, clock):
        manager.record_pnl(50.0, timestamp=clock.now - timedelta(days=400))
        manager.record_pnl(25.0)

        history = manager.get_pnl_history()
        assert len(history) == 1
        assert history[0].pnl == 25.0

    def test_metrics_are_copies(self, manager):
        manager.record_pnl(100.0)
        metrics = manager.get_risk_metrics()
        metrics.total_pnl = -1.0

        assert manager.get_risk_metrics().total_pnl == 100.0

    def test_update_limits(self, manager):
        limits = manager.update_limits(max_position_size_usd=5000.0)

        assert limits.max_position_size_usd == 5000.0
        assert manager.should_allow_trade("BTCUSDT", 0.05, 65000.0, OrderSide.BUY) is True

    def test_update_limits_rejects_invalid_values(self, manager):
        with pytest.raises(ValidationError):
            manager.update_limits(max_daily_loss_percent=2.0)

        assert manager.get_risk_limits().max_daily_loss_percent == 0.05

    def test_update_limits_rejects_unknown_keys(self, manager):
        with pytest.raises(KeyError, match="max_open_position"):
            manager.update_limits(max_open_position=1)

        assert manager.get_risk_limits().max_open_positions == 5

    def test_naive_timestamp_taken_as_utc(self, manager, clock):
        manager.record_pnl(-40.0, timestamp=clock.now.replace(tzinfo=None))

        history = manager.get_pnl_history()
        assert history[0].timestamp == clock.now
        assert manager.get_risk_metrics().daily_pnl == -40.0

    def test_concurrent_updates_from_threads(self, manager):
        def worker(index):
            for _ in range(50):
                manager.record_pnl(1.0)
            manager.update_position(f"SYM{index}USDT", make_position(f"SYM{index}USDT", 100))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(8)))

        assert manager.get_risk_metrics().total_pnl == pytest.approx(400.0)
        assert len(manager.get_pnl_history()) == 400
        assert manager.open_position_count == 8

    def test_clear_data(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 500))
        manager.record_pnl(-600.0)

        manager.clear_data()

        assert manager.get_positions() == {}
        assert manager.get_pnl_history() == []
        assert manager.get_alerts() == []
        assert manager.get_risk_metrics().daily_pnl == 0.0


class TestPositionRiskAndTargets:
    """Tests for position risk score and recommended exits."""

    def test_position_risk_score(self, manager):
        assert manager.calculate_position_risk("BTCUSDT", 1, 1000.0, OrderSide.BUY) == pytest.approx(0.12)

    def test_position_risk_includes_existing_exposure(self, manager):
        manager.update_position("BTCUSDT", make_position("BTCUSDT", 1000))

        assert manager.calculate_position_risk("BTCUSDT", 1, 1000.0, OrderSide.BUY) == pytest.approx(0.24)

    def test_position_risk_capped(self, manager):
        assert manager.calculate_position_risk("BTCUSDT", 1, 50_000.0, OrderSide.BUY) == 1.0

    def test_stop_loss_and_take_profit(self, manager):
        assert manager.get_recommended_stop_loss(100.0, OrderSide.BUY) == pytest.approx(99.0)
        assert manager.get_recommended_take_profit(100.0, OrderSide.BUY) == pytest.approx(102.0)
        assert manager.get_recommended_stop_loss(100.0, OrderSide.SELL) == pytest.approx(101.0)
        assert manager.get_recommended_take_profit(100.0, OrderSide.SELL) == pytest.approx(98.0)


class TestMonitoring:
    """Tests for the periodic monitoring loop."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, manager):
        await manager.start_monitoring()
        assert manager.is_monitoring is True

        await manager.stop_monitoring()
        assert manager.is_monitoring is False

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, clock):
        manager = RiskManager(RiskSettings(monitoring_interval_seconds=0.01), clock=clock)
        manager.run_risk_check = MagicMock(side_effect=RuntimeError("boom"))

        await manager.start_monitoring()
        await asyncio.sleep(0.1)
        await manager.stop_monitoring()

        assert manager.run_risk_check.call_count >= 2

    @pytest.mark.asyncio
    async def test_disabled_does_not_monitor(self, clock):
        manager = RiskManager(RiskSettings(enabled=False), clock=clock)

        await manager.start_monitoring()

        assert manager.is_monitoring is False

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self, manager):
        await manager.stop_monitoring()

        assert manager.is_monitoring is False
