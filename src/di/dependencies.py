"""Dependency injection container."""
from dependency_injector import containers, providers

from core.logger import LoggerService
from core.settings import Settings
from providers.factory import ProviderFactory
from providers.manager import ProviderManager
from vision.dispatcher import Dispatcher
from vision.normalizer import InputNormalizer
from vision.responder import NonStreamResponder
from vision.stream import StreamSynthesizer, StreamTiming


class Container(containers.DeclarativeContainer):
    """Main application container."""

    wiring_config = containers.WiringConfiguration()

    # Settings
    settings = providers.Singleton(Settings)

    # Core services
    logger = providers.Singleton(LoggerService, settings_instance=settings)

    # httpx transport for upstream calls; None means the default network
    # transport. Overridden with httpx.MockTransport in tests.
    upstream_transport = providers.Object(None)

    # Provider services
    provider_factory = providers.Singleton(ProviderFactory, logger=logger)

    provider_manager = providers.Singleton(
        ProviderManager,
        logger=logger,
        settings=settings,
        provider_factory=provider_factory,
    )

    # Vision pipeline
    normalizer = providers.Singleton(
        InputNormalizer,
        logger=logger,
        settings=settings,
    )

    dispatcher = providers.Singleton(
        Dispatcher,
        logger=logger,
        settings=settings,
        provider_manager=provider_manager,
        transport=upstream_transport,
    )

    responder = providers.Singleton(NonStreamResponder, logger=logger)

    stream_timing = providers.Singleton(StreamTiming.from_settings, settings=settings)

    # One synthesizer per streaming request
    stream_synthesizer = providers.Factory(
        StreamSynthesizer,
        timing=stream_timing,
        logger=logger,
    )


container = Container()
