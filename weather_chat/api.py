import logging
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .chat_service import ChatService
from .config import LOG_LEVEL
from .errors import ForecastLimitExceeded, LocationNotFound, MissingDate, MissingLocation, UpstreamUnavailable
from .messages import message
from .schemas import ChatRequest, Language
from .session_store import derive_session_id

LOGGER = logging.getLogger("weather_chat.api")

app = FastAPI(title="weather-chat")
chat_service = ChatService()


@app.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "weather-chat",
        "status": "ok",
        "routes": {
            "chat_post": "/api/chat",
            "weather_get": "/api/weather?query=weather in Tokyo tomorrow",
            "docs": "/docs",
        },
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/chat", response_class=PlainTextResponse)
def chat(payload: ChatRequest, request: Request) -> PlainTextResponse:
    session_id = derive_session_id(
        payload.session_id,
        request.headers.get("x-forwarded-for"),
        request.headers.get("x-real-ip") or (request.client.host if request.client else None),
        request.headers.get("user-agent"),
    )
    reply = chat_service.reply(payload.messages, language=payload.language, session_id=session_id)
    return PlainTextResponse(reply)


def _error(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": text})


@app.get("/api/weather")
def weather(
    query: str | None = Query(default=None, max_length=200),
    city: str | None = Query(default=None, max_length=100),
    language: Language = "en",
) -> Any:
    if not (query or "").strip() and not (city or "").strip():
        return _error(400, "Provide query or city")

    try:
        record = chat_service.weather(query=query, language=language, city=city)
    except LocationNotFound as exc:
        return _error(404, message("location_not_found", language, name=exc.name))
    except MissingLocation:
        return _error(400, message("missing_location", language))
    except MissingDate:
        return _error(400, message("missing_date", language))
    except ForecastLimitExceeded:
        return _error(400, message("forecast_limit", language))
    except UpstreamUnavailable as exc:
        LOGGER.warning("weather_endpoint_upstream_error error=%s", exc)
        return _error(502, message("upstream_error", language))
    return record.model_dump(mode="json")


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("weather_chat.api:app", host="0.0.0.0", port=8000)
