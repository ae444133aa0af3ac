import logging.config


def setup_logging(level: str = "INFO") -> None:
    level = level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%H:%M:%S",
                },
                # Werkzeug pre-formats request lines
                "access_simple": {"format": "%(message)s"},
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": "default"},
                "access": {
                    "class": "logging.StreamHandler",
                    "formatter": "access_simple",
                },
            },
            "loggers": {
                "werkzeug": {"level": level, "handlers": ["access"], "propagate": False},
            },
            "root": {"level": level, "handlers": ["console"]},
        }
    )
