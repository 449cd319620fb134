from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import auth_api, checklists_api, tasks_api
from .config import get_settings
from .db import init_db, ping_db
from .errors import ApiError, ValidationError
from .utils import isoformat_utc, now_utc

logger = logging.getLogger(__name__)
# Ensure INFO-level messages from this package appear on the server console
# when no handlers are configured.
_pkg_logger = logging.getLogger('todo_api')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s')
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    # Tokens cannot be issued or verified without a secret; refuse to start.
    if not settings.secret_key:
        raise RuntimeError('SECRET_KEY not set; set the SECRET_KEY environment variable before starting the server')
    await init_db()
    logger.info('starting server using DATABASE_URL=%s', settings.database_url)
    if settings.debug_auth_log:
        logger.info('DEBUG_AUTH_LOG enabled: authenticated user ids will be logged')
    yield
    logger.info('server shutting down')


app = FastAPI(title='Checklist API', lifespan=lifespan)

_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_settings.cors_origins),
    allow_credentials='*' not in _settings.cors_origins,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.middleware('http')
async def unexpected_error_middleware(request: Request, call_next):
    """Turn anything the handlers did not map into a 500 JSON response."""
    try:
        return await call_next(request)
    except Exception as e:
        logger.exception('unhandled error on %s %s', request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                'message': 'Server error',
                'errorType': 'Internal',
                'error': str(e) if get_settings().dev_mode else None,
            },
        )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {'field': '.'.join(str(p) for p in e.get('loc', ())), 'message': e.get('msg')}
        for e in exc.errors()
    ]
    err = ValidationError('Invalid request', errors=errors)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


app.include_router(auth_api.router)
app.include_router(checklists_api.router)
app.include_router(tasks_api.router)


@app.get('/api/health')
async def health():
    db_ok = await ping_db()
    return {
        'status': 'ok',
        'database': 'ok' if db_ok else 'unavailable',
        'timestamp': isoformat_utc(now_utc()),
    }
