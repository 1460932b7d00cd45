# broker/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from broker.api import main_router
from broker.config import API_PREFIX, HOST, PORT
from broker.database.init_data import init_db
from broker.logger import logger


global_tags = [
    {
        "name": "transactions"
    },
    {
        "name": "portfolio"
    },
    {
        "name": "assets"
    }
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(title="Broker API", lifespan=lifespan, openapi_tags=global_tags)
app.include_router(main_router, prefix=API_PREFIX)


@app.middleware("http")
async def log_exceptions_middleware(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as e:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {e}", exc_info=True)
        return JSONResponse(content={"error": "Internal Server Error"}, status_code=500)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        messages.append(f"{field}: {error['msg']}" if field else error["msg"])
    return JSONResponse(
        status_code=400,
        content={"message": messages, "error": "Bad Request", "statusCode": 400}
    )


def run():
    import uvicorn

    uvicorn.run("broker.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
