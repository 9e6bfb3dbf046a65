"""
Configuracion de logs estructurados con structlog.

structlog se monta encima del modulo logging estandar: los modulos piden su
logger con `structlog.get_logger(__name__)` y emiten eventos con pares
clave-valor (ej: logger.info("login_failed", ip="10.0.0.1")).

- En desarrollo (debug=True) se imprimen con colores y legibles.
- En produccion se imprimen como JSON, una linea por evento, facil de
  indexar en CloudWatch, Datadog, etc.
"""

import logging

import structlog


def setup_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(level=log_level, format="%(message)s")

    # boto3/botocore son muy verbosos en DEBUG (imprimen cada peticion HTTP)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
