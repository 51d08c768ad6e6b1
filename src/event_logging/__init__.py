import logging
import logging.config
import os
import uuid
import datetime

import structlog
import yaml

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")

# shared by structlog-native loggers and foreign (stdlib) records
_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def init_logging(log_root=None, config_path=CONFIG_PATH):
    # --- Pick a per-run folder ---
    run_id = f"{datetime.datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
    if log_root is None:
        log_root = os.path.join(os.getcwd(), "logs")
    log_dir = os.path.join(str(log_root), run_id)
    os.makedirs(log_dir, exist_ok=True)

    # --- Load standard logging config from YAML ---
    with open(config_path) as f:
        cfg = yaml.safe_load(f)

    # Replace placeholder path with the real run folder
    for handler in cfg["handlers"].values():
        if "filename" in handler:
            handler["filename"] = handler["filename"].replace("logs/current_run", log_dir)

    # JSON lines for every handler that asks for the "json" formatter
    cfg.setdefault("formatters", {})["json"] = {
        "()": structlog.stdlib.ProcessorFormatter,
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        "foreign_pre_chain": _PRE_CHAIN,
    }

    logging.config.dictConfig(cfg)

    # --- structlog loggers hand their event dict to the stdlib handlers ---
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return log_dir  # In case the caller wants the path
