"""FastAPI main application for the party card game backend"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .catalog import load_catalog
from .config import ServerSettings, load_settings
from .engine import GameEngine
from .errors import GameError
from .models import PromptCard, ResponseCard
from .reaper import create_reaper
from .serialization import serialize_room_summary
from .ws.server import ConnectionManager, GameGateway

logger = logging.getLogger(__name__)


class PromptCardData(BaseModel):
    text: str
    pick_count: Optional[int] = None


class ResponseCardData(BaseModel):
    text: str


class CardUpdateRequest(BaseModel):
    prompt_cards: List[PromptCardData] = []
    response_cards: List[ResponseCardData] = []


def create_app(settings: Optional[ServerSettings] = None, engine: Optional[GameEngine] = None) -> FastAPI:
    if settings is None:
        settings = load_settings()
    logging.basicConfig(level=settings.log_level.upper())

    if engine is None:
        engine = GameEngine(load_catalog(settings.card_data_dir), rules=settings.rules())
    manager = ConnectionManager()
    gateway = GameGateway(engine, manager)
    reaper = create_reaper(engine.repository, manager, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reaper.start()
        yield
        await reaper.stop()

    app = FastAPI(title="Developers Against Humanity API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.manager = manager
    app.state.reaper = reaper

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_admin(key: Optional[str] = Query(default=None)):
        if settings.admin_key and key != settings.admin_key:
            raise HTTPException(status_code=401, detail="Invalid admin key")

    @app.get("/")
    async def root():
        return {"message": "Developers Against Humanity API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "rooms": len(engine.repository),
            "connections": len(manager.connections),
        }

    @app.get("/admin/rooms", dependencies=[Depends(require_admin)])
    async def admin_list_rooms():
        now = engine.clock()
        return {"rooms": [serialize_room_summary(room, now) for room in engine.list_rooms()]}

    @app.post("/admin/rooms/clear", dependencies=[Depends(require_admin)])
    async def admin_clear_rooms():
        room_ids = engine.list_room_ids()
        logger.info(f"Clearing {len(room_ids)} room(s)")
        for room_id in room_ids:
            await manager.notify_room_deleted(room_id, "All rooms have been cleared by an admin.")
        return {"cleared": engine.clear_rooms()}

    @app.post("/admin/rooms/{room_id}/delete", dependencies=[Depends(require_admin)])
    async def admin_delete_room(room_id: str):
        try:
            room_id = engine.normalize(room_id)
        except GameError:
            raise HTTPException(status_code=404, detail="Room not found")
        if engine.get_room(room_id) is None:
            raise HTTPException(status_code=404, detail="Room not found")
        await manager.notify_room_deleted(room_id, "This room has been deleted by an admin.")
        if not engine.delete_room(room_id):
            raise HTTPException(status_code=404, detail="Room not found")
        return {"deleted": True}

    @app.get("/admin/cards", dependencies=[Depends(require_admin)])
    async def admin_get_cards():
        return {
            "prompt_cards": [{"text": c.text, "pick_count": c.pick_count} for c in engine.catalog.prompts],
            "response_cards": [{"text": c.text} for c in engine.catalog.responses],
        }

    @app.post("/admin/cards", dependencies=[Depends(require_admin)])
    async def admin_replace_cards(request: CardUpdateRequest):
        prompts = []
        for data in request.prompt_cards:
            card = PromptCard.from_text(data.text)
            if data.pick_count and data.pick_count > 0:
                card = PromptCard(id=card.id, text=card.text, pick_count=data.pick_count)
            prompts.append(card)
        responses = [ResponseCard.from_text(data.text) for data in request.response_cards]
        engine.catalog.replace_catalog(prompts, responses)
        return {"prompt_count": len(prompts), "response_count": len(responses)}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await gateway.serve(websocket)

    return app
