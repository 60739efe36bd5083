import sys
from fastapi import FastAPI
import uvicorn
from dotenv import load_dotenv
from gleamproxy.config import load_settings, ConfigurationError
from gleamproxy.domain.exceptions import CacheBackendError
from gleamproxy.interfaces.http.app import create_app

load_dotenv()

try:
    settings = load_settings()
except ConfigurationError as e:
    print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
    sys.exit(1)

try:
    app: FastAPI = create_app(settings)
except CacheBackendError as e:
    print(f"\nFailed to initialize cache backend: {e.message}", file=sys.stderr)
    sys.exit(1)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_config=None,
        access_log=False,
    )
