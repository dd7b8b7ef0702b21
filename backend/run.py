import uvicorn

from dealcall.core import config

if __name__ == "__main__":
    uvicorn.run(
        "dealcall.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=config.APP_ENV == "development",
        log_level=config.LOG_LEVEL.lower(),
    )
