"""Command line entry point for blue/green deployments."""
import asyncio
import os
import sys

from loguru import logger

from src.deployer.core.config import DeploymentConfig, settings
from src.deployer.core.logging import setup_logging
from src.deployer.deployment.orchestrator import DeploymentOrchestrator
from src.deployer.monitoring.metrics import export_metrics
from src.deployer.monitoring.tracing import setup_tracing


def credentials_environ() -> dict:
    """Process environment overlaid with credentials read from `.env`."""
    environ = dict(os.environ)
    if settings.FIREBASE_TOKEN:
        environ["FIREBASE_TOKEN"] = settings.FIREBASE_TOKEN
    if settings.NODE_ENV:
        environ["NODE_ENV"] = settings.NODE_ENV
    return environ


async def main() -> int:
    """Run one deployment and map its outcome to an exit code."""
    config = DeploymentConfig.from_settings()
    orchestrator = DeploymentOrchestrator.create(config, environ=credentials_environ())

    try:
        outcome = await orchestrator.deploy()
    finally:
        await orchestrator.close()
        export_metrics(settings.METRICS_TEXTFILE)

    if outcome.ok:
        logger.info(f"🎉 Deployment {outcome.state.deployment_id} completed successfully!")
        return 0

    logger.error(
        f"💥 Deployment failed in {outcome.phase.value}: {outcome.reason} "
        f"(status={orchestrator.state.status.value})"
    )
    return 1


def run() -> None:
    setup_logging()
    provider = setup_tracing()
    try:
        code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.error("💥 Deployment interrupted")
        code = 1
    except Exception as e:
        logger.exception(f"💥 Deployment error: {e}")
        code = 1
    finally:
        provider.shutdown()
    sys.exit(code)


if __name__ == "__main__":
    run()
