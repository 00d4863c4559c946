import uvicorn

from agent_chat.core.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "agent_chat.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.effective_log_level.lower(),
    )


if __name__ == "__main__":
    main()
