import logging

import sentry_sdk

from habitkit.config import Settings, settings as default_settings


def init_observability(settings: Settings | None = None) -> None:
    settings = settings or default_settings

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=0.2 if settings.ENVIRONMENT == "production" else 1.0,
            send_default_pii=False,
        )
