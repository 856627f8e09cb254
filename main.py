import asyncio
import argparse
import logging

from swapdesk.commands.registry import registry as action_registry
from swapdesk.config import Config
from swapdesk.db.manager import DatabaseManager
from swapdesk.db.initializer import initialize_database
from swapdesk.gateways.custody import PrivyCustody
from swapdesk.gateways.fee_oracle import PriorityFeeOracle
from swapdesk.gateways.ledger import LedgerClient
from swapdesk.gateways.trading import TradingGateway
from swapdesk.ledger.compute import ComputeEstimator
from swapdesk.loginit import initialize_logging
from swapdesk.router import Router
from swapdesk.session.manager import SessionManager
from swapdesk.session.store import build_session_store
from swapdesk.transport.telegram import TelegramTransport
from swapdesk.transport.webhook import create_app, start_webhook_server

log = None

REQUIRED_KEYS = (
    ("telegram", "bot_token"),
    ("telegram", "webhook_secret"),
    ("custody", "app_id"),
    ("custody", "app_secret"),
)


async def initialize_system(log_level=None, config_path=None):
    """Initialize all system components."""
    global log
    config = Config(path=config_path) if config_path else Config()
    if log_level:
        config.logging["log_level"] = log_level
    initialize_logging(config)

    log = logging.getLogger('swapdesk')
    log.info(f'Starting {config.bot["name"]}')

    missing = [f"{section}.{key}" for section, key in REQUIRED_KEYS
               if not getattr(config, section)[key]]
    if missing:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    # Initialize database
    db_mgr = None
    if config.session["backend"] == "sqlite":
        log.info('Starting database system')
        db_mgr = DatabaseManager(config)
        await db_mgr.start()
        await initialize_database(db_mgr, config)

    store = build_session_store(config, db_mgr)
    session_mgr = SessionManager(config, store)

    # Initialize external collaborators
    transport = TelegramTransport(config.telegram["bot_token"],
                                  api_url=config.telegram["api_url"])
    trading = TradingGateway(config.trading["base_url"],
                             api_key=config.trading["api_key"],
                             timeout=config.trading["timeout"])
    custody = PrivyCustody(config.custody["app_id"], config.custody["app_secret"],
                           signer_id=config.custody["signer_id"],
                           base_url=config.custody["base_url"],
                           auth_url=config.custody["auth_url"],
                           timeout=config.custody["timeout"])
    ledger = LedgerClient(config.ledger["rpc_url"],
                          confirm_timeout=config.ledger["confirm_timeout_seconds"])
    fee_oracle = PriorityFeeOracle(config.fees["oracle_url"])
    estimator = ComputeEstimator.from_config(config, ledger, fee_oracle)

    router = Router(config, session_mgr, transport, trading, custody, ledger, estimator)

    log.info('System initialization complete')

    return config, db_mgr, store, router


async def shutdown(db_mgr, store, router, runner=None):
    """Gracefully shutdown system components."""
    log.info('Shutting down system...')

    # Stop accepting webhook calls first
    if runner:
        await runner.cleanup()

    if router:
        for client in (router.transport, router.trading, router.custody,
                       router.estimator.fee_oracle, router.ledger):
            await client.close()

    if store:
        await store.close()

    # Close database connections
    if db_mgr:
        await db_mgr.shutdown()

    log.info('Shutdown complete')


async def sweep_sessions(store, interval=3600):
    """Periodically drop sessions nobody came back for."""
    while True:
        await asyncio.sleep(interval)
        try:
            count = await store.sweep_expired()
        except RuntimeError as e:
            log.error(f"Session sweep failed: {e}")
            continue
        if count:
            log.info(f"Session sweep removed {count} expired sessions")


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Swapdesk trading bot')
    parser.add_argument('-d', '--debug', action='store_true',
                       help='Enable debug logging')
    parser.add_argument('-c', '--config', type=str, default=None,
                       help='Path to config file (default: config.yaml)')
    return parser.parse_args()


async def main():
    """Main entry point."""
    config = db_mgr = store = router = runner = None

    args = parse_arguments()
    log_level = "DEBUG" if args.debug else None

    try:
        config, db_mgr, store, router = await initialize_system(log_level, args.config)

        app = create_app(router, config.telegram["bot_token"],
                         config.telegram["webhook_secret"])
        runner = await start_webhook_server(app, config.telegram["host"],
                                            config.telegram["port"])

        if config.telegram["register_webhook"]:
            url = f'{config.telegram["webhook_url"].rstrip("/")}/bot{config.telegram["bot_token"]}'
            await router.transport.set_webhook(url, config.telegram["webhook_secret"])
            await router.transport.set_commands(action_registry.slash_commands())

        # Keep server running until interrupted
        log.info('Server running. Press Ctrl+C to shutdown.')
        await sweep_sessions(store)

    except asyncio.CancelledError:
        log.info('Shutdown requested')
    except Exception as e:
        if log:
            log.error(f'System error: {e}')
        raise
    finally:
        if log:
            await shutdown(db_mgr, store, router, runner)


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        # Clean exit - shutdown already handled in main()
        pass
