"""
FastMCP Server for Synapse DJ

Exposes track recommendations and harmonic key tools to MCP clients.

To connect a desktop client over stdio, add to its MCP config:
{
  "mcpServers": {
    "synapse-dj": {
      "command": "python",
      "args": ["-m", "synapse_dj.mcp_server"],
      "env": {"SYNAPSE_LIBRARY_PATH": "/path/to/library.json"}
    }
  }
}

To run over HTTP (SSE) for remote or multi-client access:
  python -m synapse_dj.mcp_server --transport sse [--host 127.0.0.1] [--port 8000]
"""

import signal
import sys
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from loguru import logger

from .bpm import bpm_percent_difference
from .camelot import RELATION_DESCRIPTIONS, CamelotWheel
from .config import Settings, configure_logging
from .database import LibraryDatabase
from .recommender import RecommendationEngine

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

mcp = FastMCP("Synapse DJ")

settings: Optional[Settings] = None
db: Optional[LibraryDatabase] = None
camelot = CamelotWheel()
_initialized = False


def _ensure_initialized():
    """Lazy-load settings and the library on first tool call."""
    global settings, db, _initialized
    if _initialized:
        return

    logger.info("Initializing Synapse DJ MCP server...")
    settings = Settings.from_env()
    if settings.library_path:
        db = LibraryDatabase.from_json(settings.library_path)
    else:
        logger.warning("SYNAPSE_LIBRARY_PATH not set. Tools will see an empty library.")
        db = LibraryDatabase()
    _initialized = True


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@mcp.tool()
async def recommend_tracks(
    user_id: str,
    track_id: str,
    profile: Optional[str] = None,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    Recommend tracks from the user's collection to mix after a given track.

    Args:
        user_id: Whose collection to search
        track_id: The track currently playing
        profile: Scoring profile name ("balanced" or "classic")
        limit: Maximum number of recommendations

    Returns:
        Ranked recommendations, each with a score and the reasons behind it.
    """
    _ensure_initialized()

    try:
        scoring = settings.scoring_profile(profile)
    except KeyError as e:
        return {"error": str(e.args[0])}

    library = db.for_user(user_id)
    engine = RecommendationEngine(scoring, camelot=camelot)
    recs = engine.recommend(track_id, library.owned_track_ids(), library, limit=limit)
    return {
        "track_id": track_id,
        "profile": scoring.name,
        "count": len(recs),
        "recommendations": [r.model_dump() for r in recs],
    }


@mcp.tool()
async def get_track_compatibility(
    user_id: str,
    track_a_id: str,
    track_b_id: str,
) -> Dict[str, Any]:
    """
    Explain how well two tracks mix, component by component.

    Args:
        user_id: Whose transition history to consult
        track_a_id: The track currently playing
        track_b_id: The potential next track

    Returns:
        Score breakdown, key relationship, verdict and mixing tips.
    """
    _ensure_initialized()

    library = db.for_user(user_id)
    scoring = settings.scoring_profile()
    engine = RecommendationEngine(scoring, camelot=camelot)
    breakdown = engine.explain(track_a_id, track_b_id, library)
    if breakdown is None:
        return {"error": f"Track '{track_a_id}' or '{track_b_id}' not found"}

    a = library.get_track(track_a_id)
    b = library.get_track(track_b_id)
    h_score, rel = camelot.transition_score(a.effective_key or "", b.effective_key or "")
    bpm_pct = bpm_percent_difference(a.bpm, b.bpm, scoring.bpm_reference)

    verdict = (
        "Excellent mix" if h_score >= 0.85 and bpm_pct is not None and bpm_pct <= 3
        else "Good mix" if h_score >= 0.65
        else "Acceptable mix" if h_score >= 0.4
        else "Difficult transition"
    )

    return {
        "track_a": {"id": a.id, "artist": a.artist, "title": a.title, "bpm": a.bpm, "key": a.effective_key},
        "track_b": {"id": b.id, "artist": b.artist, "title": b.title, "bpm": b.bpm, "key": b.effective_key},
        "breakdown": breakdown.model_dump(),
        "harmonic_score": h_score,
        "key_relationship": RELATION_DESCRIPTIONS.get(rel, rel),
        "verdict": verdict,
        "tips": _get_mix_tips(rel, bpm_pct),
    }


@mcp.tool()
async def get_compatible_keys(key: str) -> Dict[str, Any]:
    """
    List the keys that mix harmonically with a key.

    Args:
        key: Camelot ("8A") or standard ("A minor", "Am") notation

    Returns:
        The compatible keys in the same notation as the input.
    """
    parsed = camelot.parse_key(key)
    return {
        "key": key,
        "recognised": parsed is not None,
        "compatible": sorted(camelot.compatible_keys(key)),
    }


@mcp.tool()
async def convert_key(key: str) -> Dict[str, Any]:
    """
    Convert a key between Camelot and standard notation.

    Args:
        key: Camelot ("8A") or standard ("A minor", "Am") notation
    """
    parsed = camelot.parse_key(key)
    if parsed is None:
        return {"error": f"Unrecognised key '{key}'"}
    return {
        "key": key,
        "camelot": camelot.to_camelot(parsed),
        "standard": camelot.to_standard(parsed),
    }


def _get_mix_tips(rel: str, bpm_pct_diff: Optional[float]) -> List[str]:
    tips = []

    if rel == "incompatible":
        tips.append("Keys clash. Consider key-shifting with DJ software")
    elif rel in ("adjacent_up", "adjacent_down"):
        tips.append("Smooth harmonic transition, can mix long overlaps")
    elif rel == "energy_boost":
        tips.append("Energy boost transition. Powerful but use sparingly")
    elif rel == "inner_outer":
        tips.append("Major/minor switch works well for emotional shifts")
    elif rel == "unknown":
        tips.append("Key unknown for one of the tracks, check by ear")

    if bpm_pct_diff is None:
        tips.append("Tempo unknown for one of the tracks")
    elif bpm_pct_diff > 6:
        tips.append(f"Large BPM gap ({bpm_pct_diff:.0f}%). Consider a quick cut")
    elif bpm_pct_diff > 3:
        tips.append(f"Moderate BPM difference ({bpm_pct_diff:.0f}%). Keep the overlap short")

    return tips if tips else ["Transition looks clean!"]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Run the MCP server."""
    import argparse

    def handle_shutdown(sig, frame):
        logger.info("Shutting down MCP server...")
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    parser = argparse.ArgumentParser()
    parser.add_argument("--transport", default="stdio", choices=["stdio", "sse"])
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    configure_logging(Settings.from_env().log_level)
    logger.info("Starting Synapse DJ MCP Server...")

    if args.transport == "sse":
        mcp.run(transport="sse", host=args.host, port=args.port)
    else:
        mcp.run()


if __name__ == "__main__":
    main()
