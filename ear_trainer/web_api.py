#!/usr/bin/env python3
"""Flask JSON interface for Ear Trainer.

Browser or mobile front ends drive rounds through a small HTTP API while
generation and scoring stay on the server:

* ``POST /api/melody`` generates a melody from configuration fields. An
  optional ``seed`` makes the result reproducible and an optional ``streak``
  applies the difficulty ladder before generating.
* ``POST /api/compare`` scores played notes against a target melody.
* ``GET /api/levels`` lists the difficulty ladder and
  ``GET /api/levels/<streak>`` reports the level for a streak together with
  the next one.

Requests are guarded the same way as the rest of the project's web code:

* **Request size limiting**: ``MAX_CONTENT_LENGTH`` (from ``MAX_UPLOAD_MB``)
  bounds request bodies; oversized bodies receive a JSON ``413`` response.
* **Rate limiting**: an in-memory per-IP throttle configured with
  ``RATE_LIMIT_PER_MINUTE`` answers ``429`` with a ``Retry-After`` header.
* **Validation**: bad input yields ``400`` with ``{"error": message}``.
"""

from __future__ import annotations

import logging
import math
import os
import random
from threading import Lock
from time import monotonic
from typing import Any, Dict, Mapping, Optional, Tuple

from flask import Flask, Response, current_app, jsonify, make_response, request

from . import config_from_settings
from .comparator import ComparisonOptions, compare_melodies
from .difficulty import (
    DIFFICULTY_LEVELS,
    config_override_for_streak,
    describe_level,
    level_for_streak,
    next_level_after,
)
from .generator import generate_melody
from .models import DifficultyLevel
from .note_utils import midi_to_note
from .scales import key_prefers_flats
from .utils import build_melody, build_played, parse_float_list, parse_note_list

__all__ = ["create_app", "rate_limit", "REQUEST_LOG", "RATE_LIMIT_WINDOW"]

logger = logging.getLogger(__name__)

# Maps a client IP to ``(window_start, count)`` for the current window.
# Guarded by ``REQUEST_LOCK`` since the development server is threaded.
REQUEST_LOG: Dict[str, Tuple[float, int]] = {}
REQUEST_LOCK = Lock()

RATE_LIMIT_WINDOW = 60.0


def _error(message: str, status: int = 400) -> Response:
    return make_response(jsonify(error=message), status)


def _configured_limit() -> Optional[int]:
    """Return the per-minute request budget, or ``None`` when unlimited."""

    raw = current_app.config.get("RATE_LIMIT_PER_MINUTE")
    if raw is None:
        return None
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer RATE_LIMIT_PER_MINUTE %r", raw)
        return None
    if limit < 0:
        logger.warning("Ignoring negative RATE_LIMIT_PER_MINUTE %r", raw)
    return limit if limit > 0 else None


def rate_limit() -> Optional[Response]:
    """``before_request`` hook throttling each client IP per fixed window.

    A client's window opens with its first request and lasts
    :data:`RATE_LIMIT_WINDOW` seconds. Once the budget from
    :func:`_configured_limit` is spent the client receives ``429`` with a
    ``Retry-After`` header until the window closes.
    """

    limit = _configured_limit()
    if limit is None:
        return None

    now = monotonic()
    client = request.remote_addr or "unknown"
    with REQUEST_LOCK:
        stale = [ip for ip, (opened, _) in REQUEST_LOG.items() if now - opened >= RATE_LIMIT_WINDOW]
        for ip in stale:
            del REQUEST_LOG[ip]
        opened, used = REQUEST_LOG.get(client, (now, 0))
        if used < limit:
            REQUEST_LOG[client] = (opened, used + 1)
            return None
        retry_after = math.ceil(RATE_LIMIT_WINDOW - (now - opened))

    logger.info("Rate limit reached for %s", client)
    response = _error("Too many requests", 429)
    # Never below one so clients always back off.
    response.headers["Retry-After"] = str(max(1, retry_after))
    return response


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _level_payload(level: DifficultyLevel) -> Dict[str, Any]:
    desc = describe_level(level)
    return {
        "level_number": level.level_number,
        "name": level.name,
        "streak_required": level.streak_required,
        "config_override": level.config_override.to_dict(),
        "description": {
            "notes": desc.notes,
            "max_leap": desc.max_leap,
            "rhythm": desc.rhythm,
            "tempo": desc.tempo,
        },
    }


def melody():
    """Generate a melody from the posted configuration."""

    try:
        data = _json_body()
        seed = data.get("seed")
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            raise ValueError("seed must be an integer")
        streak = data.get("streak")
        if streak is not None and (
            isinstance(streak, bool) or not isinstance(streak, int) or streak < 0
        ):
            raise ValueError("streak must be a non-negative integer")
        config = config_from_settings(data)
    except (TypeError, ValueError) as exc:
        return _error(str(exc))

    if streak is not None:
        config = config_override_for_streak(streak).apply_to(config)
    notes = generate_melody(config, random.Random(seed))
    flats = key_prefers_flats(config.key)
    return jsonify(
        config=config.to_dict(),
        notes=[
            {
                "pitch": n.pitch,
                "name": midi_to_note(n.pitch, flats),
                "duration_beats": n.duration_beats,
            }
            for n in notes
        ],
    )


def compare():
    """Score ``played`` notes against ``target``."""

    try:
        data = _json_body()
        if "target" not in data or "played" not in data:
            raise ValueError("target and played are required")
        durations = data.get("durations")
        target = build_melody(
            parse_note_list(data["target"]),
            parse_float_list(durations, "durations") if durations is not None else None,
        )
        onsets = data.get("onsets")
        played = build_played(
            parse_note_list(data["played"]),
            parse_float_list(onsets, "onsets") if onsets is not None else None,
        )
        rhythm = data.get("rhythm_mode_enabled", False)
        if not isinstance(rhythm, bool):
            raise ValueError("rhythm_mode_enabled must be true or false")
        tempo = data.get("tempo_bpm")
        if tempo is not None:
            tempo = float(tempo)
            if tempo <= 0:
                raise ValueError("tempo_bpm must be positive")
        if rhythm and (tempo is None or onsets is None):
            raise ValueError("rhythm scoring needs tempo_bpm and onsets")
    except (TypeError, ValueError) as exc:
        return _error(str(exc))

    result = compare_melodies(target, played, ComparisonOptions(rhythm, tempo))
    return jsonify(result.to_dict())


def levels():
    return jsonify(levels=[_level_payload(level) for level in DIFFICULTY_LEVELS])


def level_for(streak: int):
    upcoming = next_level_after(streak)
    return jsonify(
        streak=streak,
        level=_level_payload(level_for_streak(streak)),
        next=_level_payload(upcoming) if upcoming is not None else None,
    )


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """Build and configure the Flask application instance.

    ``MAX_UPLOAD_MB`` (default ``1``) and ``RATE_LIMIT_PER_MINUTE`` are read
    from the environment; entries in ``config`` take precedence, e.g.
    ``{"RATE_LIMIT_PER_MINUTE": 5}`` in tests.

    Returns:
        Flask: Application ready for a WSGI server or ``test_client()``.
    """

    app = Flask(__name__)

    try:
        max_mb = int(os.environ.get("MAX_UPLOAD_MB", "1"))
    except ValueError:
        max_mb = 1
        logger.warning("Invalid MAX_UPLOAD_MB value; defaulting to 1 MB.")
    rate_limit_env = os.environ.get("RATE_LIMIT_PER_MINUTE")
    try:
        rate_limit_per_minute = int(rate_limit_env) if rate_limit_env else None
    except ValueError:
        logger.warning(
            "RATE_LIMIT_PER_MINUTE must be an integer. Disabling rate limiting."
        )
        rate_limit_per_minute = None

    app.config["MAX_CONTENT_LENGTH"] = max_mb * 1024 * 1024
    app.config["RATE_LIMIT_PER_MINUTE"] = rate_limit_per_minute
    if config:
        app.config.update(config)

    app.add_url_rule("/api/melody", view_func=melody, methods=["POST"])
    app.add_url_rule("/api/compare", view_func=compare, methods=["POST"])
    app.add_url_rule("/api/levels", view_func=levels, methods=["GET"])
    app.add_url_rule("/api/levels/<int:streak>", view_func=level_for, methods=["GET"])

    app.before_request(rate_limit)

    @app.errorhandler(413)
    def handle_request_too_large(_err):
        return _error("Request exceeds configured size limit.", 413)

    return app


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    create_app().run(debug=True)
