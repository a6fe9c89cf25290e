import logging
import sys
from pathlib import Path

from app.core.config import settings

# Configuração básica de logging
handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(settings.log_file, encoding='utf-8'))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
    handlers=handlers,
)

logger = logging.getLogger('assinaturas')


def get_logger(component: str) -> logging.Logger:
    """Logger filho por componente (ex.: assinaturas.gateway)."""
    return logger.getChild(component)
