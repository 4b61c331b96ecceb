"""
FastAPI Web Application for Synapse DJ

Endpoints:
  GET    /api/tracks/{id}/recommendations      - Ranked mixing candidates
  GET    /api/tracks/{id}/related              - Curated transitions, both directions
  GET    /api/tracks/with-relations            - Tracks with relation counts
  POST   /api/tracks/transitions               - Record a transition
  DELETE /api/tracks/transitions/{id}          - Delete a transition
  POST   /api/records/{id}/toggle-relations    - Include/exclude a release
  GET    /api/keys/{key}/compatible            - Camelot-compatible keys
"""

import uvicorn
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from loguru import logger

from .camelot import CamelotWheel
from .config import Settings, configure_logging
from .database import LibraryDatabase, NotFoundError, TrackNotFoundError, TransitionError
from .profiles import get_profile_names
from .recommender import RecommendationEngine

# ---------------------------------------------------------------------------
# Singletons
# ---------------------------------------------------------------------------

settings = Settings.from_env()
db = LibraryDatabase()
camelot = CamelotWheel()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    global db, settings

    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if settings.library_path:
        db = LibraryDatabase.from_json(settings.library_path)
    else:
        logger.warning("SYNAPSE_LIBRARY_PATH not set. Starting with an empty library.")
        db = LibraryDatabase()

    logger.info(f"Synapse DJ ready. Profile '{settings.profile_name}', {len(db.tracks)} tracks.")
    yield


app = FastAPI(title="Synapse DJ", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

@app.get("/api/tracks/{track_id}/recommendations")
async def track_recommendations(
    track_id: str,
    user_id: str,
    profile: Optional[str] = None,
    limit: Optional[int] = None,
):
    """Ranked, explained mixing candidates from the user's own collection."""
    try:
        scoring = settings.scoring_profile(profile)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=str(e.args[0]))

    library = db.for_user(user_id)
    engine = RecommendationEngine(scoring, camelot=camelot)
    try:
        recs = engine.recommend(track_id, library.owned_track_ids(), library, limit=limit)
    except Exception as e:
        logger.error(f"Recommendations for {track_id} failed: {e}")
        return JSONResponse({"recommendations": [], "error": str(e)})
    return JSONResponse({"recommendations": [r.model_dump() for r in recs]})


@app.get("/api/profiles")
async def list_profiles():
    return {"profiles": get_profile_names(), "default": settings.profile_name}


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------

@app.get("/api/tracks/with-relations")
async def tracks_with_relations(user_id: str):
    tracks = db.for_user(user_id).tracks_with_relations()
    return JSONResponse({"tracks": [t.model_dump() for t in tracks]})


@app.get("/api/tracks/{track_id}/related")
async def related_tracks(track_id: str, user_id: str):
    related = db.for_user(user_id).related_tracks(track_id)
    return JSONResponse({"related": [r.model_dump() for r in related]})


class TransitionRequest(BaseModel):
    user_id: str
    from_track_id: str
    to_track_id: str
    worked_well: Optional[bool] = None
    rating: Optional[int] = None
    context: Optional[str] = None


@app.post("/api/tracks/transitions")
async def create_transition(body: TransitionRequest):
    library = db.for_user(body.user_id)
    try:
        transition = library.create_transition(
            body.from_track_id,
            body.to_track_id,
            worked_well=body.worked_well,
            rating=body.rating,
            context=body.context,
        )
    except TrackNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TransitionError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "transition": transition.model_dump()}


@app.delete("/api/tracks/transitions/{transition_id}")
async def delete_transition(transition_id: str, user_id: str):
    try:
        db.for_user(user_id).delete_transition(transition_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


class ToggleRelationsRequest(BaseModel):
    user_id: str
    enabled: bool


@app.post("/api/records/{release_id}/toggle-relations")
async def toggle_relations(release_id: str, body: ToggleRelationsRequest):
    try:
        release = db.for_user(body.user_id).set_relations_enabled(release_id, body.enabled)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "enabled": release.relations_enabled}


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

@app.get("/api/keys/{key}/compatible")
async def compatible_keys(key: str):
    parsed = camelot.parse_key(key)
    return {
        "key": key,
        "camelot": str(parsed) if parsed else None,
        "standard": camelot.to_standard(parsed) if parsed else None,
        "compatible": sorted(camelot.compatible_keys(key)),
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    configure_logging(settings.log_level)
    logger.info(f"Starting Synapse DJ on port {settings.port}")
    uvicorn.run(
        "synapse_dj.app:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
