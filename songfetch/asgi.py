"""ASGI entry point for uvicorn with hot reload support.

Usage:
    uvicorn songfetch.asgi:app --reload --host 0.0.0.0 --port 4444
"""

from songfetch.config import SongfetchConfig
from songfetch.logging_filters import configure_logging, install_uvicorn_access_log_filters
from songfetch.main import create_app

_config = SongfetchConfig.from_json_file()
configure_logging(_config.log_level)
install_uvicorn_access_log_filters()

app = create_app(_config).fastapi_app
