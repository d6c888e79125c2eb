# main.py
"""Main entry point for the futures decision core."""
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from futures_core.config.settings import RuntimeConfig, Settings
from futures_core.decision import DecisionEngine
from futures_core.orchestrator import (
    LoggingOrderExecutor,
    StaticFactorSource,
    TradingCycleRunner,
)
from futures_core.risk import RiskAlert, RiskManager
from futures_core.scoring import NeutralScorer
from futures_core.sizing import (
    CachedMarketDataProvider,
    PositionSizer,
    StaticAccountProvider,
    StaticMarketDataProvider,
)


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='[%(asctime)s] %(levelname)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def print_startup_banner(settings: Settings) -> None:
    """Print system startup banner."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.system.name}")
    logger.info(f"Exchange: {settings.system.exchange}")
    logger.info(f"Dry run: {settings.runtime.dry_run}")
    logger.info(f"Version: {settings.system.version}")
    logger.info("=" * 60)


def load_and_validate_config() -> Settings:
    """Load and validate configuration.

    Returns:
        Settings object loaded from YAML.

    Raises:
        SystemExit: If config file missing or YAML parsing fails.
    """
    load_dotenv()

    runtime = RuntimeConfig()
    configure_logging(runtime.log_level)
    logger.info("✓ Loaded environment variables")

    config_path = Path(runtime.config_path)
    if not config_path.exists():
        logger.error(f"{config_path} not found")
        sys.exit(1)

    try:
        settings = Settings.from_yaml(config_path)
        logger.info(f"✓ Settings loaded from {config_path}")
    except Exception as e:
        logger.error(f"Failed to parse {config_path}: {e}")
        sys.exit(1)

    if not settings.runtime.dry_run:
        logger.error("Only dry-run mode is available; set FUTURES_DRY_RUN=true")
        sys.exit(1)

    return settings


def log_alert(alert: RiskAlert) -> None:
    """Alert sink that echoes risk alerts to the console log."""
    logger.warning(f"ALERT [{alert.severity.value}] {alert.message}")


def initialize_components(settings: Settings) -> dict:
    """Wire the decision pipeline from settings.

    Args:
        settings: Loaded settings object.

    Returns:
        Dict with the wired components.
    """
    dry_run = settings.dry_run

    market_data = StaticMarketDataProvider(
        metas={symbol: data.to_meta() for symbol, data in dry_run.symbols.items()},
        prices={symbol: data.price for symbol, data in dry_run.symbols.items()},
    )
    cached_market_data = CachedMarketDataProvider(
        market_data,
        ttl_seconds=settings.sizing.metadata_ttl_seconds,
    )
    account = StaticAccountProvider(dry_run.available_margin_usd)
    logger.info(f"✓ Dry-run market data loaded ({len(dry_run.symbols)} symbols)")

    scorer = NeutralScorer(factor_weights=settings.scoring.factor_weights)
    logger.info("✓ NeutralScorer initialized")

    sizer = PositionSizer(
        cached_market_data,
        fetch_timeout_seconds=settings.sizing.fetch_timeout_seconds,
        max_concurrency=settings.sizing.max_concurrency,
    )
    logger.info("✓ PositionSizer initialized")

    risk_manager = RiskManager(settings=settings.risk)
    risk_manager.add_alert_callback(log_alert)
    logger.info("✓ RiskManager initialized")

    decision_engine = DecisionEngine(
        scorer=scorer,
        sizer=sizer,
        settings=settings.decision,
        risk_manager=risk_manager,
    )
    logger.info("✓ DecisionEngine initialized")

    factor_source = StaticFactorSource(
        {symbol: data.factors for symbol, data in dry_run.symbols.items()}
    )

    return {
        "account": account,
        "risk_manager": risk_manager,
        "decision_engine": decision_engine,
        "factor_source": factor_source,
        "executor": LoggingOrderExecutor(),
    }


def initialize_runner(settings: Settings, components: dict) -> TradingCycleRunner:
    """Initialize TradingCycleRunner.

    Args:
        settings: Loaded settings object.
        components: Dict with pipeline components.

    Returns:
        TradingCycleRunner instance.
    """
    runner = TradingCycleRunner(
        decision_engine=components["decision_engine"],
        risk_manager=components["risk_manager"],
        account=components["account"],
        factor_source=components["factor_source"],
        executor=components["executor"],
        settings=settings.orchestrator,
    )
    logger.info("✓ TradingCycleRunner initialized")

    return runner


async def main() -> None:
    """Main entry point."""
    settings = load_and_validate_config()
    print_startup_banner(settings)

    if not settings.orchestrator.enabled:
        logger.info("Orchestrator disabled in settings, exiting")
        return

    components = initialize_components(settings)
    runner = initialize_runner(settings, components)

    await runner.start()
    logger.info("System running. Press Ctrl+C to stop.")

    try:
        while runner.is_running:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        pass
    finally:
        await runner.stop()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
