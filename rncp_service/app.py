import json
import logging
from typing import Optional

from fastapi import FastAPI

from .api import bind_coordinator, router
from .config import Settings, get_settings
from .context import data_source_from_config
from .pipeline import PipelineCoordinator
from .producer import OpenAIChatProducer

logger = logging.getLogger(__name__)


def create_app(coordinator: Optional[PipelineCoordinator] = None) -> FastAPI:
    app = FastAPI(title="RNCP Instruction Service")
    app.include_router(router)
    if coordinator is not None:
        bind_coordinator(coordinator)
    return app


def build_coordinator(settings: Optional[Settings] = None) -> PipelineCoordinator:
    """Coordinator wired from settings: contracts file, data sources file, OpenAI producer."""
    cfg = settings or get_settings()
    coord = PipelineCoordinator(settings=cfg)
    if cfg.RNCP_CONTRACTS_FILE:
        coord.schemas.load_json_file(cfg.RNCP_CONTRACTS_FILE)
    if cfg.RNCP_DATA_SOURCES_FILE:
        with open(cfg.RNCP_DATA_SOURCES_FILE, "r", encoding="utf-8") as fh:
            for entry in json.load(fh):
                coord.register_data_source(data_source_from_config(entry))
    if cfg.OPENAI_API_KEY:
        coord.register_producer(OpenAIChatProducer(
            api_key=cfg.OPENAI_API_KEY,
            base_url=cfg.OPENAI_BASE_URL,
            model=cfg.OPENAI_MODEL,
            timeout=cfg.PRODUCER_TIMEOUT_SECONDS,
            max_retries=cfg.PRODUCER_MAX_RETRIES,
        ))
    else:
        logger.warning("OPENAI_API_KEY not set; no producer registered")
    return coord


# convenience for running locally
if __name__ == '__main__':
    import uvicorn

    from .logging_setup import setup_logging
    from .metrics import start_metrics_server_if_enabled

    setup_logging()
    start_metrics_server_if_enabled()
    app = create_app(build_coordinator())
    uvicorn.run(app, host='0.0.0.0', port=8001)
