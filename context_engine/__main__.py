import uvicorn

from context_engine.infrastructure.config.settings import ContextSettings
from context_engine.infrastructure.observability.logging import setup_logging
from context_engine.application.api.api_server import create_app_from_settings


def main():
    settings = ContextSettings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)
    app = create_app_from_settings(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
