import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codeforge.api.routes.chat import router as chat_router
from codeforge.api.routes.platforms import router as platforms_router
from codeforge.api.routes.rate_limits import router as rate_limits_router
from codeforge.core.config import settings
from codeforge.services.chat_gateway import ChatGateway
from codeforge.services.rate_limiting import RateLimiter

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One limiter per process, shared by the chat gateway and admin routes
    rate_limiter = RateLimiter(
        limits=settings.action_limits(),
        cleanup_interval_sec=settings.RATE_LIMIT_CLEANUP_INTERVAL_SEC,
    )
    app.state.rate_limiter = rate_limiter
    app.state.chat_gateway = ChatGateway(rate_limiter)
    await rate_limiter.start()
    yield
    await rate_limiter.stop()
    rate_limiter.destroy()


app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rate_limits_router, prefix="/api/v1")
app.include_router(platforms_router, prefix="/api/v1")
app.include_router(chat_router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "rateLimiting": app.state.rate_limiter.get_stats().to_dict(),
        "chat": app.state.chat_gateway.get_stats(),
    }


def run():
    """Serve the app with uvicorn (the `codeforge` console script)."""
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
