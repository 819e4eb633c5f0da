import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """Cấu hình logger chung cho toàn bộ ứng dụng."""
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
